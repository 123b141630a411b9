from unittest.mock import MagicMock, patch

import pandas as pd
import pytest

from facultypubs import roster
from facultypubs.errors import InputError, ProviderError
from facultypubs.roster import run_roster


@pytest.fixture
def roster_csv(tmp_path):
    path = tmp_path / "faculty.csv"
    pd.DataFrame([
        {"name": "Anand Khandare", "affiliation": "Thakur College of Engineering", "department": "AI and DS"},
        {"name": None, "affiliation": "Thakur College of Engineering", "department": "AI and DS"},
        {"name": "Priya Rao", "affiliation": "", "department": "AI and DS", "status": "complete"},
    ]).to_csv(path, index=False)
    return path


@pytest.fixture
def openalex(make_adapter, make_candidate, make_pub):
    return make_adapter(
        "openalex",
        candidates=[make_candidate("openalex", "A1", "Anand Khandare")],
        pages={"1": ([make_pub("First Paper", "openalex", doi="10.1/first")], "2"),
               "2": ProviderError("openalex", "HTTP 429")},
    )


def test_run_roster_writes_status_and_resumes(roster_csv, openalex, make_pub, fast_settings) -> None:
    df = run_roster(str(roster_csv), adapters=[openalex], settings=fast_settings)

    assert df.loc[0, "status"] == "partial"
    assert df.loc[0, "publication_count"] == 1
    assert df.loc[0, "next"]
    assert pd.isna(df.loc[1, "status"])
    assert df.loc[2, "status"] == "complete"
    saved = pd.read_csv(roster_csv)
    assert saved.loc[0, "status"] == "partial"

    openalex.pages["2"] = ([make_pub("Second Paper", "openalex", doi="10.1/second")], None)
    openalex.search_calls.clear()
    openalex.page_calls.clear()

    df = run_roster(str(roster_csv), adapters=[openalex], settings=fast_settings)

    # Only the partial row is revisited, straight from its saved page
    assert openalex.search_calls == []
    assert openalex.page_calls == [("A1", "2")]
    assert df.loc[0, "status"] == "complete"
    assert pd.isna(df.loc[0, "next"])
    assert df.loc[0, "publication_count"] == 2


def test_run_roster_persists_through_store(roster_csv, openalex, fast_settings) -> None:
    store = MagicMock()
    store.upsert_faculty_and_publications.return_value.faculty_id = "f-1"
    store.upsert_faculty_and_publications.return_value.saved_publication_count = 1

    df = run_roster(str(roster_csv), store=store, adapters=[openalex], settings=fast_settings)

    store.upsert_faculty_and_publications.assert_called_once()
    assert df.loc[0, "faculty_id"] == "f-1"


def test_run_roster_saves_every_interval(roster_csv, openalex, fast_settings, monkeypatch) -> None:
    monkeypatch.setattr(roster, "SAVE_INTERVAL", 1)
    with patch("facultypubs.roster.write_roster") as write:
        run_roster(str(roster_csv), adapters=[openalex], settings=fast_settings)
    # One save per processed row plus the final save
    assert write.call_count == 2


def test_run_roster_bad_token_starts_over(tmp_path, openalex, fast_settings) -> None:
    path = tmp_path / "faculty.csv"
    pd.DataFrame([{"name": "Anand Khandare", "status": "partial", "next": "garbage!!"}]).to_csv(path, index=False)

    run_roster(str(path), adapters=[openalex], settings=fast_settings)

    assert openalex.search_calls == ["Anand Khandare"]


def test_run_roster_missing_file(tmp_path) -> None:
    with pytest.raises(InputError):
        run_roster(str(tmp_path / "missing.csv"))


def test_run_roster_requires_name_column(tmp_path) -> None:
    path = tmp_path / "faculty.csv"
    pd.DataFrame([{"full_name": "Anand Khandare"}]).to_csv(path, index=False)
    with pytest.raises(InputError):
        run_roster(str(path))

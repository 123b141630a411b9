import sqlite3
from datetime import date

import pytest

from facultypubs.errors import InputError, PersistenceError
from facultypubs.models import CanonicalPublication, MetricsSnapshot
from facultypubs.store.sqlite_store import SqliteFacultyStore


def _canonical(key, title, year=None, venue=None, doi=None, abstract=None) -> CanonicalPublication:
    return CanonicalPublication(
        key=key, title=title, year=year, venue=venue, url=None, doi=doi, abstract=abstract,
        author_names=("Anand Khandare",), type="article", origins=("openalex",),
    )


def _metrics(total=2, citations=10, h_index=3) -> MetricsSnapshot:
    return MetricsSnapshot(total_publications=total, total_citations=citations, h_index=h_index,
                           last_updated=date(2026, 1, 1))


@pytest.fixture
def store(tmp_path):
    return SqliteFacultyStore(str(tmp_path / "faculty.db"))


def _save(store, name="Anand Khandare", department="AI and DS", publications=None, metrics=None):
    return store.upsert_faculty_and_publications(
        name=name,
        college="Thakur College of Engineering",
        department=department,
        external_ids={"orcid": "0000-0001"},
        publications=publications if publications is not None else [
            _canonical("doi:10.1/a", "Crop Disease Detection", 2021, venue="IEEE Access", doi="10.1/a"),
            _canonical("ty:chatbot survey::2019", "Chatbot Survey", 2019),
        ],
        metrics=metrics or _metrics(),
    )


def test_upsert_is_idempotent(store) -> None:
    first = _save(store)
    second = _save(store)

    assert first.faculty_id == second.faculty_id
    assert second.saved_publication_count == 2
    assert len(store.faculty_publications(first.faculty_id)) == 2
    assert len(store.list_faculty()) == 1


def test_upsert_keeps_known_fields_when_update_lacks_them(store) -> None:
    saved = _save(store)
    _save(store, publications=[_canonical("doi:10.1/a", "Crop Disease Detection", 2021, abstract="New abstract")])

    pub = next(p for p in store.faculty_publications(saved.faculty_id) if p["natural_key"] == "doi:10.1/a")
    assert pub["venue"] == "IEEE Access"
    assert pub["doi"] == "10.1/a"
    assert pub["abstract"] == "New abstract"
    assert pub["authors"] == ["Anand Khandare"]


def test_get_faculty_includes_publications_and_metrics(store) -> None:
    saved = _save(store)

    faculty = store.get_faculty(saved.faculty_id)

    assert faculty["full_name"] == "Anand Khandare"
    assert faculty["external_ids"] == {"orcid": "0000-0001"}
    assert [p["title"] for p in faculty["publications"]] == ["Crop Disease Detection", "Chatbot Survey"]
    assert faculty["metrics"]["total_citations"] == 10
    assert store.get_faculty("missing") is None


def test_list_faculty_filters(store) -> None:
    _save(store)
    _save(store, name="Sunil Patel", department="Mechanical")

    assert [f["full_name"] for f in store.list_faculty(q="khand")] == ["Anand Khandare"]
    assert [f["full_name"] for f in store.list_faculty(department="mech")] == ["Sunil Patel"]
    assert len(store.list_faculty(college="thakur")) == 2
    assert len(store.list_faculty(limit=1)) == 1
    assert store.list_faculty(q="khand")[0]["publication_count"] == 2


def test_faculty_publications_year_filter_and_order(store) -> None:
    saved = _save(store, publications=[
        _canonical("ty:undated::", "Undated"),
        _canonical("doi:10.1/old", "Old", 2015, doi="10.1/old"),
        _canonical("doi:10.1/new", "New", 2023, doi="10.1/new"),
    ])

    assert [p["title"] for p in store.faculty_publications(saved.faculty_id)] == ["New", "Old", "Undated"]
    assert [p["title"] for p in store.faculty_publications(saved.faculty_id, year_from=2020)] == ["New"]
    assert [p["title"] for p in store.faculty_publications(saved.faculty_id, year_to=2020)] == ["Old"]


def test_department_summary(store) -> None:
    _save(store, metrics=_metrics(total=2, citations=10, h_index=3))
    _save(store, name="Priya Rao", metrics=_metrics(total=1, citations=None, h_index=4), publications=[
        _canonical("doi:10.1/p", "Priya Paper", 2021, doi="10.1/p"),
    ])

    summary = store.department_summary("AI and DS")

    assert summary["total_faculty"] == 2
    assert summary["total_publications"] == 3
    assert summary["total_citations"] == 10
    assert summary["average_h_index"] == 3.5
    assert summary["publications_by_year"] == {2019: 1, 2021: 2}
    assert summary["year_range"] == {"from": 2019, "to": 2021}


def test_department_summary_unknown_department(store) -> None:
    summary = store.department_summary("Physics")
    assert summary["total_faculty"] == 0
    assert summary["average_h_index"] == 0.0
    assert summary["year_range"] is None


def test_department_summary_requires_department(store) -> None:
    with pytest.raises(InputError):
        store.department_summary("  ")


def test_database_failure_raises_persistence_error(tmp_path) -> None:
    path = tmp_path / "broken.db"
    store = SqliteFacultyStore(str(path))
    conn = sqlite3.connect(path)
    conn.execute("DROP TABLE faculty_metrics")
    conn.commit()
    conn.close()

    with pytest.raises(PersistenceError):
        _save(store)


def test_in_memory_store_persists_across_calls() -> None:
    store = SqliteFacultyStore(":memory:")
    saved = _save(store)
    assert store.get_faculty(saved.faculty_id)["department"] == "AI and DS"

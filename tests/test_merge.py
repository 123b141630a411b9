from facultypubs.merge import merge_publications, publication_key
from facultypubs.models import RawPublication


def _pub(title, origin, **kwargs) -> RawPublication:
    return RawPublication(title=title, origin=origin, **kwargs)


def test_publication_key_priority() -> None:
    assert publication_key(_pub("T", "x", doi="10.1/ABC", url="https://a")) == "doi:10.1/abc"
    assert publication_key(_pub("T", "x", url="HTTPS://A.org/p")) == "url:https://a.org/p"
    assert publication_key(_pub("Deep Nets", "x", year=2020)) == "ty:deep nets::2020"
    assert publication_key(_pub("Deep Nets", "x")) == "ty:deep nets::"


def test_same_doi_collapses_case_insensitively() -> None:
    merged = merge_publications({
        "crossref": [_pub("Crossref Title", "crossref", doi="10.1000/ABC")],
        "semantic_scholar": [_pub("S2 Title", "semantic_scholar", doi="10.1000/abc")],
    })
    assert len(merged) == 1
    # Priority order, not mapping order, picks the primary record
    assert merged[0].title == "S2 Title"
    assert merged[0].origins == ("semantic_scholar", "crossref")


def test_different_dois_never_collapse_even_with_same_title() -> None:
    merged = merge_publications({
        "semantic_scholar": [_pub("Same Title", "semantic_scholar", doi="10.1/a", year=2020)],
        "crossref": [_pub("Same Title", "crossref", doi="10.1/b", year=2020)],
    })
    assert [p.doi for p in merged] == ["10.1/a", "10.1/b"]


def test_url_trailing_slash_is_not_folded() -> None:
    merged = merge_publications({
        "openalex": [_pub("A", "openalex", url="https://X")],
        "web_search": [_pub("A", "web_search", url="https://X/")],
    })
    assert len(merged) == 2


def test_url_match_is_case_insensitive() -> None:
    merged = merge_publications({
        "openalex": [_pub("A", "openalex", url="https://Example.org/P")],
        "web_search": [_pub("A", "web_search", url="https://example.org/p")],
    })
    assert len(merged) == 1


def test_title_year_fallback() -> None:
    merged = merge_publications({
        "crossref": [
            _pub("Deep Learning", "crossref", year=2020),
            _pub("deep learning", "crossref", year=2020),
            _pub("Deep Learning", "crossref", year=2021),
        ],
    })
    assert [(p.title, p.year) for p in merged] == [("Deep Learning", 2020), ("Deep Learning", 2021)]


def test_backfill_fills_only_empty_fields() -> None:
    merged = merge_publications({
        "semantic_scholar": [_pub("T", "semantic_scholar", doi="10.1/x", venue="Venue A")],
        "crossref": [_pub("Other", "crossref", doi="10.1/x", venue="Venue B", abstract="Abstract", year=2019)],
    })
    record = merged[0]
    assert record.title == "T"
    assert record.venue == "Venue A"
    assert record.abstract == "Abstract"
    assert record.year == 2019


def test_year_not_backfilled_into_title_keyed_record() -> None:
    merged = merge_publications({
        "semantic_scholar": [_pub("T", "semantic_scholar")],
        "crossref": [_pub("T", "crossref", abstract="Abs")],
    })
    assert merged[0].key == "ty:t::"
    assert merged[0].year is None
    assert merged[0].abstract == "Abs"


def test_untitled_records_are_dropped() -> None:
    merged = merge_publications({"openalex": [_pub("", "openalex", doi="10.1/x"), _pub("  ", "openalex")]})
    assert merged == []


def test_output_order_is_first_seen_and_repeatable() -> None:
    lists = {
        "openalex": [_pub("C", "openalex", doi="10.1/c"), _pub("A", "openalex", doi="10.1/a")],
        "semantic_scholar": [_pub("B", "semantic_scholar", doi="10.1/b"), _pub("A2", "semantic_scholar", doi="10.1/a")],
    }
    first = merge_publications(lists)
    assert [p.key for p in first] == ["doi:10.1/b", "doi:10.1/a", "doi:10.1/c"]
    assert merge_publications(lists) == first


def test_merge_set_is_independent_of_internal_order() -> None:
    pubs = [_pub("A", "crossref", doi="10.1/a"), _pub("B", "crossref", url="https://b"), _pub("C", "crossref", year=2001)]
    forward = merge_publications({"crossref": pubs})
    backward = merge_publications({"crossref": list(reversed(pubs))})
    assert {p.key for p in forward} == {p.key for p in backward}


def test_unknown_providers_follow_known_ones() -> None:
    merged = merge_publications({
        "zeta": [_pub("Z", "zeta", doi="10.1/x")],
        "openalex": [_pub("O", "openalex", doi="10.1/x")],
    })
    assert merged[0].title == "O"

"""Semantic Scholar Graph API adapter."""

import logging

import requests

from facultypubs.common.name_matching import normalize_doi, normalize_orcid
from facultypubs.errors import ProviderError
from facultypubs.models import AuthorCandidate, AuthorMetrics, RawPublication
from facultypubs.providers.base import (
    DEFAULT_TIMEOUT,
    MALFORMED_RECORD,
    ProviderAdapter,
    WorksPage,
    is_attributed,
)

logger = logging.getLogger(__name__)

BASE_URL = "https://api.semanticscholar.org/graph/v1"
AUTHOR_FIELDS = "name,aliases,affiliations,externalIds"
PAPER_FIELDS = "title,year,venue,url,externalIds,abstract,authors,publicationTypes"
AUTHOR_CANDIDATES = 10
WORKS_PAGE = 100

# Semantic Scholar publication types mapped onto the lower-case tags used elsewhere
PUBLICATION_TYPES = {
    "journalarticle": "article",
    "conference": "conference",
    "review": "review",
    "book": "book",
    "booksection": "book-chapter",
    "dataset": "dataset",
}


class SemanticScholarAdapter(ProviderAdapter):
    name = "semantic_scholar"
    first_page_token = "0"
    page_size = WORKS_PAGE

    def __init__(self, session: requests.Session | None = None, api_key: str = ""):
        super().__init__(session)
        self.headers = {"x-api-key": api_key} if api_key else None

    def _search_author(self, name: str, timeout: float) -> list[AuthorCandidate]:
        data = self._get_json(
            f"{BASE_URL}/author/search",
            timeout,
            params={"query": name, "fields": AUTHOR_FIELDS, "limit": AUTHOR_CANDIDATES},
            headers=self.headers,
        )
        results = data.get("data") if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise ProviderError(self.name, "unexpected author search payload")

        candidates = []
        for item in results:
            if not isinstance(item, dict) or not item.get("authorId"):
                continue
            try:
                candidates.append(self._to_candidate(item))
            except MALFORMED_RECORD as e:
                logger.debug("Semantic Scholar: dropping malformed author %s: %s", item.get("authorId"), e)
        logger.info("Semantic Scholar author search '%s': %d candidates", name, len(candidates))
        return candidates

    def _to_candidate(self, item: dict) -> AuthorCandidate:
        external_ids = {"semantic_scholar": str(item["authorId"])}
        orcid = normalize_orcid((item.get("externalIds") or {}).get("ORCID"))
        if orcid:
            external_ids["orcid"] = orcid
        return AuthorCandidate(
            provider=self.name,
            provider_id=str(item["authorId"]),
            display_name=item.get("name") or "",
            aliases=tuple(item.get("aliases") or ()),
            affiliations=tuple(item.get("affiliations") or ()),
            external_ids=external_ids,
        )

    def fetch_works_page(
        self, author: AuthorCandidate, page_token: str, timeout: float = DEFAULT_TIMEOUT
    ) -> WorksPage:
        try:
            offset = int(page_token or self.first_page_token)
        except ValueError as e:
            raise ProviderError(self.name, f"invalid page token {page_token!r}") from e

        data = self._get_json(
            f"{BASE_URL}/author/{author.provider_id}/papers",
            timeout,
            params={"fields": PAPER_FIELDS, "offset": offset, "limit": self.page_size},
            headers=self.headers,
        )
        if not isinstance(data, dict):
            raise ProviderError(self.name, "unexpected papers payload")

        items = data.get("data")
        publications = self._parse_items(items, author)
        next_offset = data.get("next")
        next_token = str(next_offset) if next_offset is not None and items else None

        logger.info(
            "Semantic Scholar papers for %s (offset %d): %d raw, %d attributed, more=%s",
            author.display_name, offset, len(items), len(publications), bool(next_token),
        )
        return publications, next_token

    def _parse_work(self, item: dict, author: AuthorCandidate) -> RawPublication | None:
        authors = item.get("authors") or []
        names = [a.get("name") for a in authors if a.get("name")]
        if not is_attributed(author, names, ids=[str(a.get("authorId")) for a in authors]):
            return None

        external = item.get("externalIds") or {}
        types = item.get("publicationTypes") or []
        raw_type = types[0].lower() if types else "other"
        return RawPublication(
            title=(item.get("title") or "").strip(),
            origin=self.name,
            year=item.get("year"),
            venue=item.get("venue") or None,
            url=item.get("url") or None,
            doi=normalize_doi(external.get("DOI")),
            abstract=item.get("abstract") or None,
            author_names=tuple(names),
            type=PUBLICATION_TYPES.get(raw_type, raw_type),
            external_ids={"semantic_scholar": item["paperId"]} if item.get("paperId") else {},
        )

    def fetch_author_metrics(
        self, author: AuthorCandidate, timeout: float = DEFAULT_TIMEOUT
    ) -> AuthorMetrics | None:
        data = self._get_json(
            f"{BASE_URL}/author/{author.provider_id}",
            timeout,
            params={"fields": "citationCount,hIndex"},
            headers=self.headers,
        )
        if not isinstance(data, dict):
            raise ProviderError(self.name, "unexpected author payload")
        return AuthorMetrics(
            provider=self.name,
            total_citations=data.get("citationCount"),
            h_index=data.get("hIndex"),
        )

"""OpenAlex author search, cursor-paged works and author metrics."""

import logging
from datetime import date, datetime

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

BASE_URL = "https://api.openalex.org"
OPENALEX_ID_PREFIX = "https://openalex.org/"
AUTHOR_CANDIDATES = 12
WORKS_PAGE = 100


def short_id(openalex_id: str) -> str:
    """'https://openalex.org/A5023888391' -> 'A5023888391'."""
    return (openalex_id or "").replace(OPENALEX_ID_PREFIX, "").strip("/")


def rebuild_abstract(inverted_index: dict | None) -> str | None:
    """Reassemble an abstract from OpenAlex's word -> positions index."""
    if not isinstance(inverted_index, dict) or not inverted_index:
        return None
    positions = [
        (pos, word)
        for word, indexes in inverted_index.items()
        for pos in indexes
        if isinstance(pos, int)
    ]
    return " ".join(word for _, word in sorted(positions)) or None


def _parse_date(raw: str | None) -> date | None:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
    except ValueError:
        return None


class OpenAlexAdapter(ProviderAdapter):
    name = "openalex"
    first_page_token = "*"
    page_size = WORKS_PAGE

    def __init__(self, session: requests.Session | None = None, email: str = ""):
        super().__init__(session)
        self.email = email

    def _params(self, **params) -> dict:
        if self.email:
            params["mailto"] = self.email
        return params

    def _search_author(self, name: str, timeout: float) -> list[AuthorCandidate]:
        data = self._get_json(
            f"{BASE_URL}/authors",
            timeout,
            params=self._params(search=name, **{"per-page": AUTHOR_CANDIDATES}),
        )
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise ProviderError(self.name, "unexpected author search payload")

        candidates = []
        for item in results:
            if not isinstance(item, dict) or not item.get("id"):
                continue
            try:
                candidates.append(self._to_candidate(item))
            except MALFORMED_RECORD as e:
                logger.debug("OpenAlex: dropping malformed author %s: %s", item.get("id"), e)
        logger.info("OpenAlex author search '%s': %d candidates", name, len(candidates))
        return candidates

    def _to_candidate(self, item: dict) -> AuthorCandidate:
        institutions = []
        # Older payloads carry a single last_known_institution
        last_known = item.get("last_known_institutions") or [item.get("last_known_institution")]
        for inst in last_known:
            if isinstance(inst, dict) and inst.get("display_name"):
                institutions.append(inst["display_name"])
        for aff in item.get("affiliations") or []:
            inst_name = (aff.get("institution") or {}).get("display_name")
            if inst_name and inst_name not in institutions:
                institutions.append(inst_name)

        external_ids = {"openalex": item["id"]}
        orcid = normalize_orcid(item.get("orcid") or (item.get("ids") or {}).get("orcid"))
        if orcid:
            external_ids["orcid"] = orcid
        scopus = (item.get("ids") or {}).get("scopus")
        if scopus:
            external_ids["scopus"] = scopus

        return AuthorCandidate(
            provider=self.name,
            provider_id=short_id(item["id"]),
            display_name=item.get("display_name") or "",
            aliases=tuple(item.get("display_name_alternatives") or ()),
            affiliations=tuple(institutions),
            external_ids=external_ids,
        )

    def fetch_works_page(
        self, author: AuthorCandidate, page_token: str, timeout: float = DEFAULT_TIMEOUT
    ) -> WorksPage:
        data = self._get_json(
            f"{BASE_URL}/works",
            timeout,
            params=self._params(
                filter=f"author.id:{author.provider_id}",
                cursor=page_token or self.first_page_token,
                **{"per-page": self.page_size},
            ),
        )
        if not isinstance(data, dict):
            raise ProviderError(self.name, "unexpected works payload")

        batch = data.get("results")
        publications = self._parse_items(batch, author)
        next_cursor = (data.get("meta") or {}).get("next_cursor")
        if not next_cursor or len(batch) < self.page_size:
            next_cursor = None

        logger.info(
            "OpenAlex works for %s: %d raw, %d attributed, more=%s",
            author.display_name, len(batch), len(publications), bool(next_cursor),
        )
        return publications, next_cursor

    def _parse_work(self, item: dict, author: AuthorCandidate) -> RawPublication | None:
        authorships = item.get("authorships") or []
        people = [a.get("author") or {} for a in authorships]
        names = [p.get("display_name") for p in people if p.get("display_name")]
        if not is_attributed(
            author,
            names,
            orcids=[p.get("orcid") for p in people],
            ids=[short_id(p.get("id") or "") for p in people],
        ):
            return None

        title = (item.get("title") or item.get("display_name") or "").strip()
        doi = normalize_doi(item.get("doi"))
        location = item.get("primary_location") or {}
        venue = (location.get("source") or {}).get("display_name")
        url = location.get("landing_page_url") or (f"https://doi.org/{doi}" if doi else None)

        return RawPublication(
            title=title,
            origin=self.name,
            year=item.get("publication_year"),
            venue=venue or None,
            url=url,
            doi=doi,
            abstract=rebuild_abstract(item.get("abstract_inverted_index")),
            author_names=tuple(names),
            type=(item.get("type") or "other").lower(),
            external_ids={"openalex": short_id(item.get("id") or "")} if item.get("id") else {},
        )

    def fetch_author_metrics(
        self, author: AuthorCandidate, timeout: float = DEFAULT_TIMEOUT
    ) -> AuthorMetrics | None:
        data = self._get_json(f"{BASE_URL}/authors/{author.provider_id}", timeout, params=self._params())
        if not isinstance(data, dict):
            raise ProviderError(self.name, "unexpected author payload")
        return AuthorMetrics(
            provider=self.name,
            total_citations=data.get("cited_by_count"),
            h_index=(data.get("summary_stats") or {}).get("h_index"),
            updated=_parse_date(data.get("updated_date")),
        )

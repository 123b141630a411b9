"""Generic web-search adapter backed by Serper's Google Scholar endpoint.

A web search has no author registry: the query name itself is the only
candidate, and attribution relies on the author list Scholar prints in
each result's publication line ("A Khandare, S Patel - Journal, 2021 - ...").
"""

import logging
import re

import requests

from facultypubs.common.name_matching import clean_markup, extract_doi, normalize_name
from facultypubs.errors import ProviderError
from facultypubs.identity import ScoreWeights
from facultypubs.models import AuthorCandidate, RawPublication
from facultypubs.providers.base import DEFAULT_TIMEOUT, ProviderAdapter, WorksPage, is_attributed

logger = logging.getLogger(__name__)

SCHOLAR_URL = "https://google.serper.dev/scholar"
WORKS_PAGE = 20
MAX_PAGES = 3
_YEAR = re.compile(r"\b(19|20)\d{2}\b")


def parse_publication_info(summary: str) -> tuple[list[str], str | None, int | None]:
    """Split a Scholar publication line into (authors, venue, year)."""
    parts = [p.strip() for p in (summary or "").split(" - ")]
    authors = [
        a.strip(" …")
        for a in parts[0].split(",")
        if a.strip(" …")
    ] if parts and parts[0] else []

    venue, year = None, None
    if len(parts) > 1:
        match = _YEAR.search(parts[1])
        if match:
            year = int(match.group(0))
        venue = _YEAR.sub("", parts[1]).strip(" ,…") or None
    return authors, venue, year


class WebSearchAdapter(ProviderAdapter):
    name = "web_search"
    first_page_token = "1"
    page_size = WORKS_PAGE
    # The single candidate is always the query name
    weights = ScoreWeights(name=0)

    def __init__(self, session: requests.Session | None = None, api_key: str = ""):
        super().__init__(session)
        self.api_key = api_key

    def _search_author(self, name: str, timeout: float) -> list[AuthorCandidate]:
        if not self.api_key:
            logger.info("Web search disabled: no API key configured")
            return []
        return [AuthorCandidate(
            provider=self.name,
            provider_id=normalize_name(name),
            display_name=name,
        )]

    def fetch_works_page(
        self, author: AuthorCandidate, page_token: str, timeout: float = DEFAULT_TIMEOUT
    ) -> WorksPage:
        if not self.api_key:
            raise ProviderError(self.name, "no API key configured")
        try:
            page = int(page_token or self.first_page_token)
        except ValueError as e:
            raise ProviderError(self.name, f"invalid page token {page_token!r}") from e

        data = self._request_json(
            "POST",
            SCHOLAR_URL,
            timeout,
            json_body={"q": author.display_name, "page": page, "num": self.page_size},
            headers={"X-API-KEY": self.api_key, "Content-Type": "application/json"},
        )
        if not isinstance(data, dict):
            raise ProviderError(self.name, "unexpected search payload")

        items = data.get("organic") or []
        publications = self._parse_items(items, author)
        more = len(items) >= self.page_size and page < MAX_PAGES
        logger.info(
            "Web search page %d for %s: %d raw, %d attributed",
            page, author.display_name, len(items), len(publications),
        )
        return publications, str(page + 1) if more else None

    def _parse_work(self, item: dict, author: AuthorCandidate) -> RawPublication | None:
        link = item.get("link") or item.get("url") or ""
        info = item.get("publicationInfo")
        summary = info.get("summary", "") if isinstance(info, dict) else (info or "")
        names, venue, year = parse_publication_info(summary)
        if not is_attributed(author, names):
            return None

        raw_year = item.get("year")
        if isinstance(raw_year, int) or (isinstance(raw_year, str) and raw_year.isdigit()):
            year = int(raw_year)

        title = clean_markup(item.get("title") or item.get("titleHighlighted")) or ""
        return RawPublication(
            title=title,
            origin=self.name,
            year=year,
            venue=venue,
            url=link or None,
            doi=extract_doi(link),
            author_names=tuple(names),
        )

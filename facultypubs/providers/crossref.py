"""Crossref works search for a named author.

Crossref has no author registry, so candidates are assembled from the
author lists of works matching the name: authors carrying an ORCID are
keyed by it, the rest by their normalized name. Works are then paged
with Crossref's deep-paging cursor, filtered by ORCID when one is known.
"""

import logging

import requests
from crossref.restful import Etiquette

from facultypubs.common.name_matching import (
    clean_markup,
    names_similar,
    normalize_doi,
    normalize_name,
    normalize_orcid,
)
from facultypubs.errors import ProviderError
from facultypubs.models import AuthorCandidate, RawPublication
from facultypubs.providers.base import (
    DEFAULT_TIMEOUT,
    MALFORMED_RECORD,
    ProviderAdapter,
    WorksPage,
    is_attributed,
)

logger = logging.getLogger(__name__)

WORKS_URL = "https://api.crossref.org/works"
SEARCH_ROWS = 20
WORKS_PAGE = 50
SELECT_FIELDS = "DOI,title,author,issued,published,created,container-title,URL,abstract,type"


def get_item_year(item: dict) -> int | None:
    """Publication year from issued/published date-parts, falling back to created."""
    for field in ("issued", "published", "created"):
        date_parts = (item.get(field) or {}).get("date-parts") or []
        if date_parts and date_parts[0] and date_parts[0][0]:
            return int(date_parts[0][0])
    return None


def author_full_name(au: dict) -> str:
    return " ".join(p for p in (au.get("given", ""), au.get("family", "")) if p).strip() or au.get("name", "")


class CrossrefAdapter(ProviderAdapter):
    name = "crossref"
    first_page_token = "*"
    page_size = WORKS_PAGE

    def __init__(self, session: requests.Session | None = None, email: str = ""):
        super().__init__(session)
        etiquette = Etiquette(
            "FacultyPublications", "1.0",
            "https://github.com/facultypubs/facultypubs",
            email or "anonymous",
        )
        self.headers = {"User-Agent": str(etiquette)}

    def _message(self, params: dict, timeout: float) -> dict:
        data = self._get_json(WORKS_URL, timeout, params=params, headers=self.headers)
        message = data.get("message") if isinstance(data, dict) else None
        if not isinstance(message, dict):
            raise ProviderError(self.name, "unexpected works payload")
        return message

    def _search_author(self, name: str, timeout: float) -> list[AuthorCandidate]:
        message = self._message({"query.author": name, "rows": SEARCH_ROWS, "select": "author"}, timeout)
        logger.info("CrossRef search for author '%s'", name)

        by_id: dict[str, dict] = {}
        for item in message.get("items") or []:
            authors = item.get("author") if isinstance(item, dict) else None
            if not isinstance(authors, list):
                logger.debug("CrossRef: skipping search item without an author list")
                continue
            for au in authors:
                try:
                    self._collect_author(by_id, au, name)
                except MALFORMED_RECORD as e:
                    logger.debug("CrossRef: dropping malformed author %r: %s", au, e)

        return [
            AuthorCandidate(
                provider=self.name,
                provider_id=key,
                display_name=entry["name"],
                aliases=tuple(entry["aliases"]),
                affiliations=tuple(entry["affiliations"]),
                external_ids={"orcid": entry["orcid"]} if entry["orcid"] else {},
            )
            for key, entry in by_id.items()
        ]

    @staticmethod
    def _collect_author(by_id: dict[str, dict], au: dict, name: str) -> None:
        """Fold one work author into the candidates keyed by ORCID or normalized name."""
        full_name = author_full_name(au)
        if not names_similar(full_name, name):
            return
        orcid = normalize_orcid(au.get("ORCID"))
        affiliations = [aff.get("name") for aff in au.get("affiliation") or []]

        key = orcid or normalize_name(full_name)
        entry = by_id.setdefault(key, {"name": full_name, "aliases": [], "affiliations": [], "orcid": orcid})
        if full_name != entry["name"] and full_name not in entry["aliases"]:
            entry["aliases"].append(full_name)
        for aff_name in affiliations:
            if aff_name and aff_name not in entry["affiliations"]:
                entry["affiliations"].append(aff_name)

    def fetch_works_page(
        self, author: AuthorCandidate, page_token: str, timeout: float = DEFAULT_TIMEOUT
    ) -> WorksPage:
        params = {
            "rows": self.page_size,
            "cursor": page_token or self.first_page_token,
            "select": SELECT_FIELDS,
        }
        if author.orcid:
            params["filter"] = f"orcid:{author.orcid}"
        else:
            params["query.author"] = author.display_name

        message = self._message(params, timeout)
        items = message.get("items")
        publications = self._parse_items(items, author)
        next_cursor = message.get("next-cursor")
        if not next_cursor or len(items) < self.page_size:
            next_cursor = None

        logger.info(
            "CrossRef works for %s: %d raw, %d attributed, more=%s",
            author.display_name, len(items), len(publications), bool(next_cursor),
        )
        return publications, next_cursor

    def _parse_work(self, item: dict, author: AuthorCandidate) -> RawPublication | None:
        authors = item.get("author") or []
        names = [author_full_name(au) for au in authors]
        if not is_attributed(author, names, orcids=[au.get("ORCID") for au in authors]):
            return None

        titles = item.get("title") or []
        venues = item.get("container-title") or []
        doi = normalize_doi(item.get("DOI"))
        return RawPublication(
            title=clean_markup(titles[0] if titles else "") or "",
            origin=self.name,
            year=get_item_year(item),
            venue=clean_markup(venues[0]) if venues else None,
            url=item.get("URL") or None,
            doi=doi,
            abstract=clean_markup(item.get("abstract")),
            author_names=tuple(n for n in names if n),
            type=(item.get("type") or "other").lower(),
        )

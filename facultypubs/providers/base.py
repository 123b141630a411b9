"""Common contract and HTTP plumbing for provider adapters.

Every adapter turns one provider's wire format into AuthorCandidate and
RawPublication records. Adapters make single bounded requests only:
retries and budget decisions belong to the orchestrator.
"""

import logging
from typing import Any, Sequence

import requests

from facultypubs.common.name_matching import names_similar, normalize_orcid
from facultypubs.errors import ProviderError
from facultypubs.identity import DEFAULT_WEIGHTS, ScoreWeights
from facultypubs.models import AuthorCandidate, AuthorMetrics, RawPublication

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 3.0

WorksPage = tuple[list[RawPublication], str | None]

# Errors a parse step raises on a malformed provider record
MALFORMED_RECORD = (KeyError, TypeError, ValueError, AttributeError, IndexError)


class ProviderAdapter:
    """Base class for provider adapters.

    Subclasses implement ``_search_author``, ``fetch_works_page`` and
    optionally ``fetch_author_metrics``. ``first_page_token`` is the page
    token that starts an author's works listing.
    """

    name = "provider"
    first_page_token = "1"
    page_size = 100
    weights: ScoreWeights = DEFAULT_WEIGHTS

    def __init__(self, session: requests.Session | None = None):
        self.session = session or requests.Session()

    def search_author(self, name: str, timeout: float = DEFAULT_TIMEOUT) -> list[AuthorCandidate]:
        """Return author candidates for a name; never raises."""
        try:
            return self._search_author(name, timeout)
        except ProviderError as e:
            logger.warning("Author search failed for '%s': %s", name, e)
            return []

    def _search_author(self, name: str, timeout: float) -> list[AuthorCandidate]:
        raise NotImplementedError

    def fetch_works_page(
        self, author: AuthorCandidate, page_token: str, timeout: float = DEFAULT_TIMEOUT
    ) -> WorksPage:
        """Return (attributed publications, next page token or None).

        Raises ProviderError on transport or payload failures.
        """
        raise NotImplementedError

    def fetch_author_metrics(
        self, author: AuthorCandidate, timeout: float = DEFAULT_TIMEOUT
    ) -> AuthorMetrics | None:
        """Author-level citation metrics, for providers that report them."""
        return None

    def _request_json(
        self,
        method: str,
        url: str,
        timeout: float,
        params: dict | None = None,
        json_body: dict | None = None,
        headers: dict | None = None,
    ) -> Any:
        """Issue one request and decode JSON, translating failures to ProviderError."""
        try:
            response = self.session.request(
                method, url, params=params, json=json_body, headers=headers, timeout=timeout
            )
            response.raise_for_status()
            return response.json()
        except requests.Timeout as e:
            raise ProviderError(self.name, f"timed out after {timeout:.1f}s") from e
        except requests.RequestException as e:
            raise ProviderError(self.name, f"request failed: {e}") from e
        except ValueError as e:
            raise ProviderError(self.name, f"invalid JSON: {e}") from e

    def _get_json(self, url: str, timeout: float, params: dict | None = None, headers: dict | None = None) -> Any:
        return self._request_json("GET", url, timeout, params=params, headers=headers)

    def _parse_items(self, items: Any, author: AuthorCandidate) -> list[RawPublication]:
        """Parse a list of provider items, dropping malformed or unattributed ones."""
        if not isinstance(items, list):
            raise ProviderError(self.name, "unexpected payload shape: expected a list of works")

        parsed: list[RawPublication] = []
        dropped = 0
        for item in items:
            if not isinstance(item, dict):
                dropped += 1
                continue
            try:
                publication = self._parse_work(item, author)
            except MALFORMED_RECORD as e:
                logger.debug("%s: dropping malformed work: %s", self.name, e)
                publication = None
            if publication is None or not publication.title:
                dropped += 1
                continue
            parsed.append(publication)

        if dropped:
            logger.debug("%s: dropped %d of %d works for %s", self.name, dropped, len(items), author.display_name)
        return parsed

    def _parse_work(self, item: dict, author: AuthorCandidate) -> RawPublication | None:
        raise NotImplementedError


def is_attributed(
    author: AuthorCandidate,
    names: Sequence[str],
    orcids: Sequence[str | None] = (),
    ids: Sequence[str | None] = (),
) -> bool:
    """Check that a work belongs to the resolved author rather than a namesake.

    An exact identifier match (provider id or ORCID) wins; without
    identifiers on both sides the names are compared with names_similar.
    """
    if ids and author.provider_id in ids:
        return True
    author_orcid = normalize_orcid(author.orcid)
    work_orcids = {normalize_orcid(o) for o in orcids if o}
    if author_orcid and work_orcids:
        return author_orcid in work_orcids
    own_names = [author.display_name, *author.aliases]
    return any(names_similar(n, own) for n in names if n for own in own_names if own)

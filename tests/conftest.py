import threading
from unittest.mock import MagicMock

import pytest

from facultypubs.config import Settings
from facultypubs.errors import ProviderError
from facultypubs.models import AuthorCandidate, RawPublication
from facultypubs.providers.base import ProviderAdapter


class FakeAdapter(ProviderAdapter):
    """In-memory adapter: candidates and pages are scripted per test."""

    def __init__(self, name, candidates=(), pages=None, metrics=None, first_page="1", hang=None):
        super().__init__(session=MagicMock())
        self.name = name
        self.first_page_token = first_page
        self.candidates = list(candidates)
        self.pages = pages or {}
        self.metrics = metrics
        self.hang = hang
        self.search_calls: list[str] = []
        self.page_calls: list[tuple[str, str]] = []

    def _search_author(self, name, timeout):
        self.search_calls.append(name)
        return list(self.candidates)

    def fetch_works_page(self, author, page_token, timeout=3.0):
        self.page_calls.append((author.provider_id, page_token))
        if self.hang is not None:
            self.hang.wait(10)
            raise ProviderError(self.name, "released")
        result = self.pages[page_token]
        if isinstance(result, Exception):
            raise result
        return result

    def fetch_author_metrics(self, author, timeout=3.0):
        return self.metrics


def candidate(provider, provider_id, name, affiliations=(), **external_ids):
    return AuthorCandidate(
        provider=provider,
        provider_id=provider_id,
        display_name=name,
        affiliations=tuple(affiliations),
        external_ids=external_ids,
    )


def pub(title, origin, doi=None, year=None, url=None, venue=None, abstract=None):
    return RawPublication(
        title=title, origin=origin, doi=doi, year=year, url=url, venue=venue, abstract=abstract,
    )


@pytest.fixture
def make_adapter():
    return FakeAdapter


@pytest.fixture
def make_candidate():
    return candidate


@pytest.fixture
def make_pub():
    return pub


@pytest.fixture
def fast_settings():
    return Settings(
        budget_ms=3000,
        call_timeout_ms=1000,
        min_call_ms=10,
        max_publications=300,
        provider_order=["semantic_scholar", "crossref", "openalex", "web_search"],
        serper_api_key="",
    )


@pytest.fixture
def release():
    event = threading.Event()
    yield event
    event.set()

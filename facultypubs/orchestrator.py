"""Budgeted ingestion of one faculty member's publications across providers.

Pipeline stages per run:
  1. Resolve the author identity on every provider (in parallel)
  2. Page through the resolved author's works until the data, the
     wall-clock budget or the per-adapter soft cap runs out
  3. Merge all providers' records in a fixed priority order
  4. Summarize metrics and hand the result to the persistence store

A provider that times out, errors or returns garbage contributes nothing
to the run; it never aborts the other providers. Adapters that stop with
pages left emit a continuation token the caller can pass back to resume.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as CallTimeout
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Callable, Sequence

import requests

from facultypubs.config import Settings
from facultypubs.errors import InputError, ProviderError
from facultypubs.identity import resolve_author
from facultypubs.merge import merge_publications, provider_sequence
from facultypubs.metrics import summarize_metrics
from facultypubs.models import (
    AuthorCandidate,
    AuthorMetrics,
    IngestResult,
    PersonQuery,
    RawPublication,
)
from facultypubs.providers.base import ProviderAdapter
from facultypubs.providers.crossref import CrossrefAdapter
from facultypubs.providers.openalex import OpenAlexAdapter
from facultypubs.providers.semantic_scholar import SemanticScholarAdapter
from facultypubs.providers.web_search import WebSearchAdapter

logger = logging.getLogger(__name__)

# Bounds applied to a per-request publication limit
MIN_LIMIT = 50
MAX_LIMIT = 1000


class Budget:
    """Wall-clock budget shared by every adapter of one run."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self.seconds = seconds
        self._clock = clock
        self.started = clock()

    def elapsed(self) -> float:
        return self._clock() - self.started

    def remaining(self) -> float:
        return max(0.0, self.seconds - self.elapsed())

    def call_timeout(self, max_call: float) -> float:
        """Timeout for the next call: the per-call cap, never past the budget."""
        return min(max_call, self.remaining())


def bounded_call(fn: Callable[..., Any], timeout: float, *args) -> Any:
    """Run ``fn(*args, timeout=timeout)`` and stop waiting once timeout elapses.

    The adapter passes the same timeout to its HTTP request, which closes
    the connection on expiry; an adapter that ignores it is abandoned.
    Raises concurrent.futures.TimeoutError when the call overruns.
    """
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="provider-call")
    try:
        future = pool.submit(fn, *args, timeout=timeout)
        return future.result(timeout=timeout)
    finally:
        pool.shutdown(wait=False, cancel_futures=True)


@dataclass
class AdapterOutcome:
    provider: str
    status: str = "complete"
    author: AuthorCandidate | None = None
    publications: list[RawPublication] = field(default_factory=list)
    metrics: AuthorMetrics | None = None
    continuation: dict[str, Any] | None = None


def build_adapters(settings: Settings, session: requests.Session) -> list[ProviderAdapter]:
    """Construct the enabled adapters, sharing one HTTP session for the run."""
    factories = {
        "semantic_scholar": lambda: SemanticScholarAdapter(session, api_key=settings.semantic_scholar_api_key),
        "crossref": lambda: CrossrefAdapter(session, email=settings.crossref_email),
        "openalex": lambda: OpenAlexAdapter(session, email=settings.openalex_email),
        "web_search": lambda: WebSearchAdapter(session, api_key=settings.serper_api_key),
    }
    adapters = []
    for name in settings.provider_order:
        if name not in factories:
            logger.warning("Unknown provider '%s' in provider_order, skipping", name)
            continue
        adapters.append(factories[name]())
    return adapters


def soft_cap(limit: int | None, default: int) -> int:
    return max(MIN_LIMIT, min(limit or default, MAX_LIMIT))


def continuation_token(author: AuthorCandidate, page: str) -> dict[str, Any]:
    return {
        "author_id": author.provider_id,
        "display_name": author.display_name,
        "external_ids": dict(author.external_ids),
        "page": page,
    }


def author_from_token(provider: str, token: dict[str, Any], fallback_name: str) -> AuthorCandidate:
    return AuthorCandidate(
        provider=provider,
        provider_id=str(token["author_id"]),
        display_name=token.get("display_name") or fallback_name,
        external_ids=dict(token.get("external_ids") or {}),
    )


class IngestionRun:
    """State of one ingestion run: the query, its budget and call bounds."""

    def __init__(self, query: PersonQuery, settings: Settings):
        self.query = query
        self.budget = Budget(settings.budget_ms / 1000)
        self.max_call = settings.call_timeout_ms / 1000
        self.min_call = settings.min_call_ms / 1000
        self.cap = soft_cap(query.limit, settings.max_publications)

    def can_call(self) -> bool:
        return self.budget.remaining() >= self.min_call

    def call(self, fn: Callable[..., Any], *args) -> Any:
        return bounded_call(fn, self.budget.call_timeout(self.max_call), *args)

    def run_adapter(self, adapter: ProviderAdapter) -> AdapterOutcome:
        """Resolve, page and collect metrics for one adapter."""
        outcome = AdapterOutcome(adapter.name)
        token = (self.query.continuation or {}).get(adapter.name)

        if token:
            author = author_from_token(adapter.name, token, self.query.name)
            page = str(token["page"])
            logger.info("RESUME: %s for %s at page %s", adapter.name, author.display_name, page)
        else:
            if not self.can_call():
                outcome.status = "budget"
                return outcome
            try:
                candidates = self.call(adapter.search_author, self.query.name)
            except CallTimeout:
                logger.warning("%s: author search timed out", adapter.name)
                outcome.status = "timeout"
                return outcome
            author = resolve_author(
                candidates, self.query.name, self.query.affiliation,
                self.query.department, weights=adapter.weights,
            )
            if author is None:
                logger.info("%s: no author candidates for '%s'", adapter.name, self.query.name)
                outcome.status = "no_author"
                return outcome
            page = adapter.first_page_token
        outcome.author = author

        while page is not None:
            if len(outcome.publications) >= self.cap:
                outcome.status = "capped"
                break
            if not self.can_call():
                outcome.status = "budget"
                break
            try:
                items, next_page = self.call(adapter.fetch_works_page, author, page)
            except CallTimeout:
                logger.warning("%s: works page %s timed out", adapter.name, page)
                outcome.status = "timeout"
                break
            except ProviderError as e:
                logger.warning("%s: works page %s failed: %s", adapter.name, page, e)
                outcome.status = "failed"
                break
            outcome.publications.extend(items)
            page = next_page

        if page is not None:
            outcome.continuation = continuation_token(author, page)

        if self.can_call():
            try:
                outcome.metrics = self.call(adapter.fetch_author_metrics, author)
            except CallTimeout:
                logger.warning("%s: author metrics timed out", adapter.name)
            except ProviderError as e:
                logger.warning("%s: author metrics failed: %s", adapter.name, e)

        logger.info(
            "%s: %s with %d publications for %s",
            adapter.name, outcome.status, len(outcome.publications), author.display_name,
        )
        return outcome

    def run_adapter_safely(self, adapter: ProviderAdapter) -> AdapterOutcome:
        try:
            return self.run_adapter(adapter)
        except Exception:
            logger.exception("%s: adapter crashed, treating as empty", adapter.name)
            return AdapterOutcome(adapter.name, status="failed")

    def run_all(self, adapters: Sequence[ProviderAdapter]) -> dict[str, AdapterOutcome]:
        if not adapters:
            return {}
        with ThreadPoolExecutor(max_workers=len(adapters), thread_name_prefix="adapter") as pool:
            futures = {adapter.name: pool.submit(self.run_adapter_safely, adapter) for adapter in adapters}
            return {name: future.result() for name, future in futures.items()}


def _external_ids(authors: dict[str, AuthorCandidate]) -> dict[str, str]:
    external_ids: dict[str, str] = {}
    for author in authors.values():
        for key, value in author.external_ids.items():
            external_ids.setdefault(key, value)
    return external_ids


def ingest_author_publications(
    query: PersonQuery,
    adapters: Sequence[ProviderAdapter] | None = None,
    store=None,
    settings: Settings | None = None,
    today: date | None = None,
) -> IngestResult:
    """Fetch, merge, summarize and persist one faculty member's publications.

    Args:
        query: Person to ingest; ``query.continuation`` resumes a previous run.
        adapters: Provider adapters; built from ``settings`` when omitted.
        store: Persistence collaborator exposing ``upsert_faculty_and_publications``.
        settings: Budget, timeouts and provider order.
        today: Fallback date for the metrics snapshot.

    Raises:
        InputError: if the query has no name.
    """
    settings = settings or Settings()
    name = (query.name or "").strip() if isinstance(query.name, str) else ""
    if not name:
        raise InputError("Missing name")

    query = replace(query, name=name)
    run = IngestionRun(query, settings)
    session = None
    if adapters is None:
        session = requests.Session()
        adapters = build_adapters(settings, session)
    try:
        outcomes = run.run_all(adapters)
    finally:
        if session is not None:
            session.close()

    order = provider_sequence(outcomes, settings.provider_order)
    resolved = {p: outcomes[p].author for p in order if outcomes[p].author is not None}
    publications = merge_publications({p: outcomes[p].publications for p in order}, settings.provider_order)
    metrics = summarize_metrics(publications, {p: outcomes[p].metrics for p in order}, settings.provider_order, today)
    continuation = {p: outcomes[p].continuation for p in order if outcomes[p].continuation}

    result = IngestResult(
        resolved_authors=resolved,
        publications=publications,
        metrics=metrics,
        continuation=continuation or None,
        provider_status={p: outcomes[p].status for p in order},
    )

    if store is not None:
        try:
            saved = store.upsert_faculty_and_publications(
                name=name,
                college=query.affiliation or "Unknown",
                department=query.department or "Unknown",
                external_ids=_external_ids(resolved),
                publications=publications,
                metrics=metrics,
            )
            result.faculty_id = saved.faculty_id
            result.saved_publication_count = saved.saved_publication_count
        except Exception as e:
            logger.error("[DB SAVE] failed (continuing): %s", e)

    logger.info(
        "Ingested %s in %.2fs: %d publications, continuation=%s",
        name, run.budget.elapsed(), len(publications), sorted(continuation),
    )
    return result

"""Summary bibliometrics for one ingestion run."""

from datetime import date
from typing import Mapping, Sequence

from facultypubs.config import DEFAULT_PROVIDER_ORDER
from facultypubs.merge import provider_sequence
from facultypubs.models import AuthorMetrics, CanonicalPublication, MetricsSnapshot


def summarize_metrics(
    publications: Sequence[CanonicalPublication],
    author_metrics: Mapping[str, AuthorMetrics | None],
    priority: Sequence[str] = DEFAULT_PROVIDER_ORDER,
    today: date | None = None,
) -> MetricsSnapshot:
    """Count the merged set and take provider-reported numbers verbatim.

    Citations, h-index and the update date are each taken from the first
    provider in priority order that reports a value; nothing is averaged.
    """
    total_citations = h_index = updated = None
    for provider in provider_sequence(author_metrics, priority):
        metrics = author_metrics[provider]
        if metrics is None:
            continue
        if total_citations is None and metrics.total_citations is not None:
            total_citations = metrics.total_citations
        if h_index is None and metrics.h_index is not None:
            h_index = metrics.h_index
        if updated is None and metrics.updated is not None:
            updated = metrics.updated

    return MetricsSnapshot(
        total_publications=len(publications),
        total_citations=total_citations,
        h_index=h_index,
        last_updated=updated or today or date.today(),
    )

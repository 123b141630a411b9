"""Shared typed models for the ingestion pipeline."""

from dataclasses import dataclass, field
from datetime import date
from typing import Any


@dataclass(frozen=True)
class PersonQuery:
    """One ingestion request for a named faculty member.

    ``continuation`` is the decoded token map returned by a previous run;
    ``limit`` overrides the per-adapter soft cap on accumulated publications.
    """

    name: str
    affiliation: str = ""
    department: str = ""
    continuation: dict[str, dict[str, Any]] | None = None
    limit: int | None = None


@dataclass(frozen=True)
class AuthorCandidate:
    """A provider's notion of an author, as returned by author search."""

    provider: str
    provider_id: str
    display_name: str
    aliases: tuple[str, ...] = ()
    affiliations: tuple[str, ...] = ()
    external_ids: dict[str, str] = field(default_factory=dict)

    @property
    def orcid(self) -> str | None:
        return self.external_ids.get("orcid") or None


# The candidate an identity resolver settled on for one provider.
ResolvedAuthor = AuthorCandidate


@dataclass(frozen=True)
class AuthorMetrics:
    """Bibliometrics reported verbatim by a provider's author-detail endpoint."""

    provider: str
    total_citations: int | None = None
    h_index: int | None = None
    updated: date | None = None


@dataclass(frozen=True)
class RawPublication:
    """Normalized publication record produced by one adapter page."""

    title: str
    origin: str
    year: int | None = None
    venue: str | None = None
    url: str | None = None
    doi: str | None = None
    abstract: str | None = None
    author_names: tuple[str, ...] = ()
    type: str = "other"
    external_ids: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CanonicalPublication:
    """Deduplicated publication, keyed by its natural key."""

    key: str
    title: str
    year: int | None
    venue: str | None
    url: str | None
    doi: str | None
    abstract: str | None
    author_names: tuple[str, ...]
    type: str
    origins: tuple[str, ...]
    external_ids: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "title": self.title,
            "year": self.year,
            "venue": self.venue,
            "url": self.url,
            "doi": self.doi,
            "abstract": self.abstract,
            "authors": list(self.author_names),
            "type": self.type,
            "origins": list(self.origins),
            "external_ids": dict(self.external_ids),
        }


@dataclass(frozen=True)
class MetricsSnapshot:
    total_publications: int
    total_citations: int | None
    h_index: int | None
    last_updated: date

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_publications": self.total_publications,
            "total_citations": self.total_citations,
            "h_index": self.h_index,
            "last_updated": self.last_updated.isoformat(),
        }


@dataclass
class IngestResult:
    """Outcome of one ingestion run.

    ``resolved_authors`` holds at most one author per provider, and
    ``provider_status`` records why each adapter stopped (``complete``,
    ``no_author``, ``budget``, ``capped``, ``timeout``, ``failed``).
    """

    resolved_authors: dict[str, AuthorCandidate]
    publications: list[CanonicalPublication]
    metrics: MetricsSnapshot
    continuation: dict[str, dict[str, Any]] | None = None
    provider_status: dict[str, str] = field(default_factory=dict)
    faculty_id: str | None = None
    saved_publication_count: int = 0

    @property
    def resolved_author(self) -> AuthorCandidate | None:
        """First resolved author, following the provider order of the run."""
        return next(iter(self.resolved_authors.values()), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "resolved_authors": {
                provider: {
                    "id": author.provider_id,
                    "name": author.display_name,
                    "affiliations": list(author.affiliations),
                    "external_ids": dict(author.external_ids),
                }
                for provider, author in self.resolved_authors.items()
            },
            "publications": [pub.to_dict() for pub in self.publications],
            "metrics": self.metrics.to_dict(),
            "continuation": self.continuation,
            "provider_status": dict(self.provider_status),
            "faculty_id": self.faculty_id,
            "saved_publication_count": self.saved_publication_count,
        }

"""Merge per-provider publication lists into one deduplicated set.

Records are keyed, in priority order, by:
  1. ``doi:<lowercased doi>``
  2. ``url:<lowercased url>`` (literal: no trailing-slash or scheme folding)
  3. ``ty:<lowercased title>::<year>``

Providers are visited in a fixed priority order, so the first provider to
claim a key supplies that key's primary record no matter which provider
finished fetching first. Later records sharing the key only fill fields
the primary record left empty.
"""

import dataclasses
import logging
from typing import Mapping, Sequence

from facultypubs.config import DEFAULT_PROVIDER_ORDER
from facultypubs.models import CanonicalPublication, RawPublication

logger = logging.getLogger(__name__)

# Fields a later record may fill in when the primary record left them empty
BACKFILL_FIELDS = ("venue", "abstract", "url", "year", "author_names")


def publication_key(pub: RawPublication) -> str:
    doi = (pub.doi or "").strip()
    if doi:
        return f"doi:{doi.lower()}"
    url = (pub.url or "").strip()
    if url:
        return f"url:{url.lower()}"
    return f"ty:{(pub.title or '').strip().lower()}::{pub.year if pub.year is not None else ''}"


def provider_sequence(providers, priority: Sequence[str] = DEFAULT_PROVIDER_ORDER) -> list[str]:
    """Known providers in priority order, then unknown ones alphabetically."""
    known = [p for p in priority if p in providers]
    return known + sorted(p for p in providers if p not in priority)


def _to_canonical(key: str, pub: RawPublication) -> CanonicalPublication:
    return CanonicalPublication(
        key=key,
        title=pub.title.strip(),
        year=pub.year,
        venue=pub.venue or None,
        url=pub.url or None,
        doi=pub.doi or None,
        abstract=pub.abstract or None,
        author_names=tuple(pub.author_names),
        type=(pub.type or "other").lower(),
        origins=(pub.origin,),
        external_ids=dict(pub.external_ids),
    )


def _backfill(existing: CanonicalPublication, pub: RawPublication) -> CanonicalPublication:
    updates = {}
    for field in BACKFILL_FIELDS:
        # The year is part of a title key, so filling it would change the key
        if field == "year" and existing.key.startswith("ty:"):
            continue
        if getattr(existing, field) in (None, "", ()) and getattr(pub, field) not in (None, "", ()):
            updates[field] = tuple(pub.author_names) if field == "author_names" else getattr(pub, field)

    if pub.origin not in existing.origins:
        updates["origins"] = existing.origins + (pub.origin,)
    missing_ids = {k: v for k, v in pub.external_ids.items() if k not in existing.external_ids}
    if missing_ids:
        updates["external_ids"] = {**existing.external_ids, **missing_ids}
    return dataclasses.replace(existing, **updates) if updates else existing


def merge_publications(
    lists_by_provider: Mapping[str, Sequence[RawPublication]],
    priority: Sequence[str] = DEFAULT_PROVIDER_ORDER,
) -> list[CanonicalPublication]:
    """Deduplicate publications from all providers.

    Deterministic for a fixed priority: output order is the first-seen
    order of keys while walking providers in priority order.
    """
    merged: dict[str, CanonicalPublication] = {}
    raw_count = 0
    for provider in provider_sequence(lists_by_provider, priority):
        for pub in lists_by_provider[provider] or ():
            if not pub.title or not pub.title.strip():
                logger.debug("Dropping untitled record from %s", provider)
                continue
            raw_count += 1
            key = publication_key(pub)
            if key in merged:
                merged[key] = _backfill(merged[key], pub)
            else:
                merged[key] = _to_canonical(key, pub)

    logger.info("Merged %d raw publications into %d canonical records", raw_count, len(merged))
    return list(merged.values())

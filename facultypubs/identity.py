"""Select the single best author identity among a provider's candidates.

Each candidate is scored on three signals:
  1. Normalized display name equals the query name
  2. Affiliation hint appears in the candidate's names/affiliations
  3. Department hint appears in the same text

The highest score wins; ties go to the candidate the provider listed first.
When nothing scores, the first candidate is still returned: enforcing the
affiliation strictly is left to the caller.
"""

import logging
from dataclasses import dataclass
from typing import Sequence

from facultypubs.common.name_matching import affiliation_matches, normalize_name
from facultypubs.models import AuthorCandidate, ResolvedAuthor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreWeights:
    """Per-provider weights for the identity signals."""

    name: int = 2
    affiliation: int = 2
    department: int = 1


DEFAULT_WEIGHTS = ScoreWeights()


def score_candidate(
    candidate: AuthorCandidate,
    name: str,
    affiliation: str = "",
    department: str = "",
    weights: ScoreWeights = DEFAULT_WEIGHTS,
) -> int:
    score = 0
    if normalize_name(candidate.display_name) == normalize_name(name):
        score += weights.name

    haystack = " ".join(
        [candidate.display_name, *candidate.aliases, *candidate.affiliations]
    )
    if affiliation and affiliation_matches(haystack, affiliation, ""):
        score += weights.affiliation
    if department and affiliation_matches(haystack, "", department):
        score += weights.department
    return score


def resolve_author(
    candidates: Sequence[AuthorCandidate],
    name: str,
    affiliation: str = "",
    department: str = "",
    weights: ScoreWeights = DEFAULT_WEIGHTS,
) -> ResolvedAuthor | None:
    """Return the best-scoring candidate, or None when there are no candidates."""
    if not candidates:
        return None

    best, best_score = None, -1
    for candidate in candidates:
        score = score_candidate(candidate, name, affiliation, department, weights)
        if score > best_score:
            best, best_score = candidate, score

    if best_score == 0 and (affiliation or department):
        logger.info(
            "NO SIGNAL: %s -> falling back to first candidate '%s' (%s)",
            name, best.display_name, best.provider,
        )
    else:
        logger.info(
            "RESOLVED: %s -> %s (%s, score %d of %d candidates)",
            name, best.display_name, best.provider, best_score, len(candidates),
        )
    return best

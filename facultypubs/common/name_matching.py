"""Shared name, affiliation and identifier normalization utilities.

Used by the identity resolver and by every provider adapter's
author-attribution filter, so that all providers agree on what
"the same person" and "the same DOI" mean.
"""

import re

from bs4 import BeautifulSoup
from unidecode import unidecode

_DOI_PREFIX = re.compile(r"^(?:https?://(?:dx\.)?doi\.org/|doi:\s*)", re.IGNORECASE)
_DOI_IN_TEXT = re.compile(r"10\.\d{4,9}/[^\s\"'<>?#]+")


def _collapse(text: str) -> str:
    return re.sub(r"\s+", " ", text.lower().strip())


def names_similar(a: str, b: str) -> bool:
    """Return True if two free-text person names plausibly denote the same person.

    Deliberately permissive: exact match or substring containment after
    case/whitespace normalization, otherwise equal surnames plus an equal
    first name or a single-letter initial that prefixes the other first name.

    >>> names_similar("A. Khandare", "Anand Khandare")
    True
    """
    if not a or not b:
        return False
    norm_a, norm_b = _collapse(a), _collapse(b)
    if not norm_a or not norm_b:
        return False
    if norm_a == norm_b or norm_a in norm_b or norm_b in norm_a:
        return True

    tokens_a = [t for t in re.split(r"[\s.]+", norm_a) if t]
    tokens_b = [t for t in re.split(r"[\s.]+", norm_b) if t]
    if not tokens_a or not tokens_b:
        return False
    if tokens_a[-1] != tokens_b[-1]:
        return False

    first_a, first_b = tokens_a[0], tokens_b[0]
    if first_a == first_b:
        return True
    if len(first_a) == 1 and first_b.startswith(first_a):
        return True
    if len(first_b) == 1 and first_a.startswith(first_b):
        return True
    return False


def affiliation_matches(text: str, affiliation: str = "", department: str = "") -> bool:
    """Return True if every non-empty hint is a case-insensitive substring of text."""
    haystack = (text or "").lower()
    if affiliation and affiliation.lower() not in haystack:
        return False
    if department and department.lower() not in haystack:
        return False
    return True


def normalize_name(name: str) -> str:
    """Lowercase, transliterate accents, drop punctuation, collapse whitespace.

    Hyphens become spaces so 'acin-perez' matches 'acin perez'.
    """
    if not name or not isinstance(name, str):
        return ""
    norm = unidecode(name).lower()
    norm = norm.replace("-", " ")
    norm = re.sub(r"[^\w\s]", "", norm)
    return re.sub(r"\s+", " ", norm).strip()


def normalize_doi(value: str | None) -> str | None:
    """Strip resolver prefixes and lowercase a DOI; None for blank input."""
    if not value or not isinstance(value, str):
        return None
    doi = _DOI_PREFIX.sub("", value.strip()).strip()
    return doi.lower() or None


def extract_doi(text: str | None) -> str | None:
    """Find a DOI embedded in free text such as a landing-page link."""
    if not text:
        return None
    match = _DOI_IN_TEXT.search(text)
    if not match:
        return None
    return normalize_doi(match.group(0).rstrip(".,;)"))


def normalize_orcid(value: str | None) -> str | None:
    """Reduce an ORCID URL or bare id to the bare 0000-0000-0000-0000 form."""
    if not value or not isinstance(value, str):
        return None
    orcid = value.strip().rstrip("/").rsplit("/", 1)[-1]
    return orcid.upper() or None


def clean_markup(text: str | None) -> str | None:
    """Strip HTML/JATS tags (Crossref titles and abstracts carry them)."""
    if not text or not isinstance(text, str):
        return None
    if "<" not in text:
        cleaned = text
    else:
        cleaned = BeautifulSoup(text, "html.parser").get_text()
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    return cleaned or None

"""Serialization of the per-adapter continuation map.

A continuation map looks like::

    {"openalex": {"author_id": "A5023888391", "display_name": "Anand Khandare",
                  "external_ids": {"orcid": "0000-0002-..."}, "page": "IlsxNjk..."}}

It is handed back to callers as a single URL-safe string so it survives
query strings, spreadsheets and process restarts.
"""

import base64
import binascii
import json
from typing import Any

from facultypubs.errors import InputError

REQUIRED_FIELDS = ("author_id", "page")


def encode_continuation(tokens: dict[str, dict[str, Any]] | None) -> str:
    if not tokens:
        return ""
    raw = json.dumps(tokens, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_continuation(value: str | None) -> dict[str, dict[str, Any]] | None:
    """Decode a string produced by encode_continuation.

    Raises InputError when the token is not one this package issued.
    """
    if not value:
        return None
    padded = value + "=" * (-len(value) % 4)
    try:
        tokens = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (binascii.Error, ValueError, UnicodeError) as e:
        raise InputError(f"Malformed continuation token: {e}") from e

    if not isinstance(tokens, dict):
        raise InputError("Malformed continuation token: expected an object")
    for provider, token in tokens.items():
        if not isinstance(token, dict) or any(not token.get(f) for f in REQUIRED_FIELDS):
            raise InputError(f"Malformed continuation token for provider '{provider}'")
    return tokens

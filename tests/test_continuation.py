import pytest

from facultypubs.common.continuation import decode_continuation, encode_continuation
from facultypubs.errors import InputError


def test_continuation_survives_encoding() -> None:
    tokens = {"openalex": {"author_id": "A1", "display_name": "Anand Khandare", "external_ids": {}, "page": "IlsxNjk="}}
    encoded = encode_continuation(tokens)
    assert "=" not in encoded
    assert decode_continuation(encoded) == tokens


def test_empty_continuation() -> None:
    assert encode_continuation(None) == ""
    assert encode_continuation({}) == ""
    assert decode_continuation("") is None
    assert decode_continuation(None) is None


def test_garbage_continuation_rejected() -> None:
    with pytest.raises(InputError):
        decode_continuation("not-a-token!!")


def test_continuation_without_page_rejected() -> None:
    encoded = encode_continuation({"openalex": {"author_id": "A1"}})
    with pytest.raises(InputError):
        decode_continuation(encoded)

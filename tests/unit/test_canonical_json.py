from __future__ import annotations

import hashlib
import io

import pytest

from services.provisioning.canonical import (
    CanonicalJSONError,
    TeeSink,
    canonical_bytes,
    dumps,
    write_canonical,
)


def test_keys_are_sorted_and_separators_compact() -> None:
    assert dumps({"b": [1, 2], "a": {"z": None, "y": True}}) == '{"a":{"y":true,"z":null},"b":[1,2]}'


def test_non_ascii_text_is_kept_verbatim() -> None:
    assert canonical_bytes({"title": "Ünïcödé ✓"}) == '{"title":"Ünïcödé ✓"}'.encode("utf-8")


def test_streamed_output_matches_in_memory_encoding() -> None:
    document = {"plugins": {f"plugin-{index}": {"version": f"1.{index}"} for index in range(2000)}}
    digest = hashlib.sha1()
    collected = io.BytesIO()
    sink = TeeSink(digest.update, collected.write)

    write_canonical(document, sink)

    expected = canonical_bytes(document)
    assert collected.getvalue() == expected
    assert sink.bytes_written == len(expected)
    assert digest.digest() == hashlib.sha1(expected).digest()
    assert sink.closed


def test_unserializable_values_raise() -> None:
    with pytest.raises(CanonicalJSONError):
        dumps({"value": object()})


def test_nan_is_rejected() -> None:
    with pytest.raises(CanonicalJSONError):
        dumps({"value": float("nan")})

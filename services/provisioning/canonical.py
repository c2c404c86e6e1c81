"""Canonical JSON serialization used for feed digests and signatures.

Keys are sorted, separators carry no whitespace and text is UTF-8 encoded
without ASCII escaping.  :func:`write_canonical` streams through a buffered
text writer and closes it before returning; the digest is only complete once
that final flush has reached every consumer.
"""

from __future__ import annotations

import io
import json
from typing import Any, Callable, Iterator


class CanonicalJSONError(ValueError):
    pass


class TeeSink(io.RawIOBase):
    """Binary sink forwarding every written chunk to each consumer."""

    def __init__(self, *consumers: Callable[[bytes], Any]) -> None:
        super().__init__()
        self._consumers = consumers
        self.bytes_written = 0

    def writable(self) -> bool:
        return True

    def write(self, data: Any) -> int:
        chunk = bytes(data)
        for consume in self._consumers:
            consume(chunk)
        self.bytes_written += len(chunk)
        return len(chunk)


def _encoder() -> json.JSONEncoder:
    return json.JSONEncoder(
        sort_keys=True,
        ensure_ascii=False,
        allow_nan=False,
        separators=(",", ":"),
    )


def iter_canonical(obj: Any) -> Iterator[str]:
    """Yield the canonical encoding of ``obj`` in text chunks."""

    try:
        yield from _encoder().iterencode(obj)
    except (TypeError, ValueError) as exc:
        raise CanonicalJSONError(str(exc)) from exc


def write_canonical(obj: Any, sink: io.RawIOBase) -> None:
    """Write ``obj`` canonically to ``sink`` and close it."""

    writer = io.TextIOWrapper(io.BufferedWriter(sink), encoding="utf-8", newline="")
    with writer:
        for chunk in iter_canonical(obj):
            writer.write(chunk)


def dumps(obj: Any) -> str:
    """Return the canonical JSON string for ``obj``."""

    return "".join(iter_canonical(obj))


def canonical_bytes(obj: Any) -> bytes:
    return dumps(obj).encode("utf-8")


__all__ = [
    "CanonicalJSONError",
    "TeeSink",
    "canonical_bytes",
    "dumps",
    "iter_canonical",
    "write_canonical",
]

"""Helpers for comparing plugin version strings."""

from __future__ import annotations

import re

from packaging.version import InvalidVersion, Version


__all__ = [
    "compare_versions",
    "is_older_than",
    "normalize_version",
]


def normalize_version(raw: str | None) -> str | None:
    """Strip build annotations such as ``"1.2 (private-abc)"`` down to ``"1.2"``."""

    if raw is None:
        return None
    version = raw.strip()
    if not version:
        return None
    return version.split(" ", 1)[0]


def compare_versions(current_version: str, candidate: str) -> int:
    """Compare ``candidate`` against ``current_version``.

    Returns ``1`` when ``candidate`` is newer, ``-1`` when it is older and ``0``
    when the versions are equivalent.  Plugin versions that are not valid PEP 440
    strings (``1.0-SNAPSHOT``, ``2.5-beta-1``) are compared token by token with
    qualifiers ranking below the bare release.
    """

    current = normalize_version(current_version) or ""
    other = normalize_version(candidate) or ""
    if other == current:
        return 0

    try:
        candidate_version = Version(other)
        current_version_parsed = Version(current)
    except InvalidVersion:
        return _fallback_compare(current, other)

    if candidate_version == current_version_parsed:
        return 0
    if candidate_version > current_version_parsed:
        return 1
    return -1


def is_older_than(installed: str | None, required: str | None) -> bool:
    """Return ``True`` when ``installed`` does not satisfy ``required``.

    An unknown installed version never satisfies a minimum; no minimum is always
    satisfied.
    """

    if required is None:
        return False
    if normalize_version(installed) is None:
        return True
    return compare_versions(required, installed or "") < 0


def _fallback_compare(current_version: str, candidate: str) -> int:
    def tokenize(version: str) -> list[tuple[int, object]]:
        tokens: list[tuple[int, object]] = []
        for raw in re.split(r"[.\-+_]", version):
            if not raw:
                continue
            if raw.isdigit():
                tokens.append((0, int(raw)))
            else:
                tokens.append((-1, raw.lower()))
        return tokens

    current_tokens = tokenize(current_version)
    candidate_tokens = tokenize(candidate)
    length = max(len(current_tokens), len(candidate_tokens))
    for index in range(length):
        current_token = current_tokens[index] if index < len(current_tokens) else (0, 0)
        candidate_token = candidate_tokens[index] if index < len(candidate_tokens) else (0, 0)
        if candidate_token != current_token:
            if candidate_token[0] != current_token[0]:
                return 1 if candidate_token[0] > current_token[0] else -1
            return 1 if candidate_token > current_token else -1  # type: ignore[operator]
    return 0

from __future__ import annotations

"""Agent version helpers.

The provisioner records the agent version that last completed a full
reconciliation, so the running version must be resolvable without a network
round trip.
"""

from functools import lru_cache
import os
from importlib import metadata, resources

_DISTRIBUTION_NAME = "plugin-provisioner"
_FALLBACK_VERSION = "0.0.0-dev"


def _read_version_file() -> str | None:
    try:
        text = resources.files(__package__).joinpath("VERSION").read_text(encoding="utf-8")
    except (FileNotFoundError, ModuleNotFoundError):
        return None
    version = text.strip()
    return version or None


def _version_from_env() -> str | None:
    env_version = os.environ.get("PROVISIONER_AGENT_VERSION")
    if not env_version:
        return None
    return _normalize(env_version)


def _version_from_metadata() -> str | None:
    try:
        return _normalize(metadata.version(_DISTRIBUTION_NAME))
    except metadata.PackageNotFoundError:
        return None


def _normalize(raw_version: str) -> str:
    version = raw_version.strip()
    if version.startswith("v"):
        version = version[1:]
    # Hosts append build annotations after a space, e.g. "4.2 (private-0f3a)".
    return version.split(" ", 1)[0]


@lru_cache(maxsize=1)
def get_agent_version() -> str:
    """Return the running agent version.

    The order of precedence is:
    1. The ``PROVISIONER_AGENT_VERSION`` environment variable.
    2. Embedded ``VERSION`` file packaged with the agent.
    3. Installed distribution metadata.
    4. A fallback development version string.
    """

    for resolver in (_version_from_env, _read_version_file, _version_from_metadata):
        version = resolver()
        if version:
            return version
    return _FALLBACK_VERSION


__all__ = ["get_agent_version"]

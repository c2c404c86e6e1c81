"""Provisioner configuration loaded from JSON resources."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from importlib import resources
from math import isfinite
from pathlib import Path
from typing import Any, Mapping

_CONFIG_RESOURCE = "provisioner.json"
_CONFIG_PATH_ENV = "PROVISIONER_CONFIG_PATH"
_PROVISIONER_CONFIG_CACHE: ProvisionerConfig | None = None

_DEFAULT_TRUSTED_ID = "jenkins-enterprise"
_DEFAULT_TRUSTED_URL = "http://jenkins-updates.cloudbees.com/update-center.json"
_DEFAULT_LEGACY_IDS = ("ichci",)
_DEFAULT_LEGACY_URLS = ("http://nectar-updates.cloudbees.com/update-center.json",)
_DEFAULT_PUBLIC_ID = "default"
_DEFAULT_PUBLIC_URL = "http://updates.jenkins-ci.org/update-center.json"


@dataclass(frozen=True)
class FeedConfig:
    """Identity of the trusted feed and the aliases it replaces."""

    trusted_id: str
    trusted_url: str
    legacy_ids: frozenset[str]
    legacy_urls: frozenset[str]
    default_id: str
    default_url: str
    due_interval_seconds: int
    retry_backoff_seconds: int
    delegate_plugin: str | None

    @property
    def matching_ids(self) -> frozenset[str]:
        return self.legacy_ids | {self.trusted_id}

    @property
    def matching_urls(self) -> frozenset[str]:
        return self.legacy_urls | {self.trusted_url}


@dataclass(frozen=True)
class InstallerConfig:
    """Cadence of the delayed installer worker."""

    tick_seconds: float
    missing_warning_interval_seconds: float
    failure_warning_interval_seconds: float
    restart_grace_seconds: float
    quiet_down_poll_seconds: float


@dataclass(frozen=True)
class TrustConfig:
    """Where trust anchors for feed signatures come from."""

    pinned_root_resource: str
    host_root_ca_dir: str


@dataclass(frozen=True)
class ProvisionerConfig:
    feed: FeedConfig
    installer: InstallerConfig
    trust: TrustConfig


def get_provisioner_config() -> ProvisionerConfig:
    """Return the cached provisioner configuration."""

    global _PROVISIONER_CONFIG_CACHE
    if _PROVISIONER_CONFIG_CACHE is None:
        _PROVISIONER_CONFIG_CACHE = load_provisioner_config(os.environ.get(_CONFIG_PATH_ENV))
    return _PROVISIONER_CONFIG_CACHE


def reset_provisioner_config_cache() -> None:
    """Reset the cached configuration for subsequent reloads."""

    global _PROVISIONER_CONFIG_CACHE
    _PROVISIONER_CONFIG_CACHE = None


def load_provisioner_config(path: str | Path | None = None) -> ProvisionerConfig:
    """Load configuration from ``path`` or the bundled JSON resource."""

    data = _read_config_data(path)
    feed = _parse_feed_section(_section(data, "feed"))
    installer = _parse_installer_section(_section(data, "installer"))
    trust = _parse_trust_section(_section(data, "trust"))
    return ProvisionerConfig(feed=feed, installer=installer, trust=trust)


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any] | None:
    section = data.get(name) if isinstance(data, Mapping) else None
    return section if isinstance(section, Mapping) else None


def _read_config_data(path: str | Path | None) -> Mapping[str, Any]:
    if path is not None:
        return _load_json_from_path(Path(path).expanduser())
    return _load_default_config_data()


def _load_json_from_path(path: Path) -> Mapping[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return {}
    return _parse_json(raw)


def _load_default_config_data() -> Mapping[str, Any]:
    try:
        resource = resources.files(__package__).joinpath(_CONFIG_RESOURCE)
        raw = resource.read_text(encoding="utf-8")
    except (FileNotFoundError, OSError):
        return {}
    return _parse_json(raw)


def _parse_json(raw: str) -> Mapping[str, Any]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    if isinstance(parsed, Mapping):
        return parsed
    return {}


def _parse_feed_section(section: Mapping[str, Any] | None) -> FeedConfig:
    section = section or {}
    return FeedConfig(
        trusted_id=_coerce_text(section.get("trusted_id"), default=_DEFAULT_TRUSTED_ID),
        trusted_url=_coerce_text(section.get("trusted_url"), default=_DEFAULT_TRUSTED_URL),
        legacy_ids=_coerce_text_set(section.get("legacy_ids"), default=_DEFAULT_LEGACY_IDS),
        legacy_urls=_coerce_text_set(section.get("legacy_urls"), default=_DEFAULT_LEGACY_URLS),
        default_id=_coerce_text(section.get("default_id"), default=_DEFAULT_PUBLIC_ID),
        default_url=_coerce_text(section.get("default_url"), default=_DEFAULT_PUBLIC_URL),
        due_interval_seconds=_coerce_positive_int(
            section.get("due_interval_seconds"), default=24 * 60 * 60
        ),
        retry_backoff_seconds=_coerce_positive_int(section.get("retry_backoff_seconds"), default=15),
        delegate_plugin=_coerce_optional_text(section.get("delegate_plugin")),
    )


def _parse_installer_section(section: Mapping[str, Any] | None) -> InstallerConfig:
    section = section or {}
    return InstallerConfig(
        tick_seconds=_coerce_positive_float(section.get("tick_seconds"), default=5.0),
        missing_warning_interval_seconds=_coerce_positive_float(
            section.get("missing_warning_interval_seconds"), default=60.0 * 60.0
        ),
        failure_warning_interval_seconds=_coerce_positive_float(
            section.get("failure_warning_interval_seconds"), default=60.0
        ),
        restart_grace_seconds=_coerce_positive_float(section.get("restart_grace_seconds"), default=5.0),
        quiet_down_poll_seconds=_coerce_positive_float(section.get("quiet_down_poll_seconds"), default=1.0),
    )


def _parse_trust_section(section: Mapping[str, Any] | None) -> TrustConfig:
    section = section or {}
    return TrustConfig(
        pinned_root_resource=_coerce_text(section.get("pinned_root_resource"), default="root-cacert.pem"),
        host_root_ca_dir=_coerce_text(section.get("host_root_ca_dir"), default="update-center-rootCAs"),
    )


def _coerce_text(value: Any, *, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _coerce_optional_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _coerce_text_set(value: Any, *, default: tuple[str, ...]) -> frozenset[str]:
    if not isinstance(value, list):
        return frozenset(default)
    return frozenset(entry.strip() for entry in value if isinstance(entry, str) and entry.strip())


def _coerce_positive_int(value: Any, *, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        candidate = int(value)
    elif isinstance(value, str):
        try:
            candidate = int(float(value))
        except ValueError:
            return default
    else:
        return default
    if candidate <= 0:
        return default
    return candidate


def _coerce_positive_float(value: Any, *, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        candidate = float(value)
    elif isinstance(value, str):
        try:
            candidate = float(value.strip())
        except ValueError:
            return default
    else:
        return default
    if not isfinite(candidate) or candidate <= 0:
        return default
    return candidate


__all__ = [
    "FeedConfig",
    "InstallerConfig",
    "ProvisionerConfig",
    "TrustConfig",
    "get_provisioner_config",
    "load_provisioner_config",
    "reset_provisioner_config_cache",
]

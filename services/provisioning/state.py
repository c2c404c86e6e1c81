"""Persistence of the agent version that last completed provisioning."""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, Tuple

from domain.plugins.versioning import compare_versions, normalize_version

_LOGGER = logging.getLogger(__name__)

_ENV_STATE_PATH = "PROVISIONER_STATE_PATH"


def default_state_path() -> Path:
    """Return the configured state path, falling back to the user home."""

    override = os.environ.get(_ENV_STATE_PATH)
    if override:
        return Path(override)
    return Path.home() / ".plugin_provisioner" / "state.json"


class InstalledVersionStore:
    """Remember which agent version last saw every manifest entry installed.

    Alongside the version the store records the install modes that pass
    confirmed.  Modes requested since the last confirmation are held in memory
    and join the confirmed set on the next :meth:`set_installed` call.

    A missing, unreadable or malformed state file is treated as "nothing
    confirmed", which forces a fresh reconciliation.
    """

    def __init__(self, path: Path | None = None, *, version_provider: Callable[[], str]) -> None:
        self._path = path or default_state_path()
        self._version_provider = version_provider
        self._lock = threading.Lock()
        self._installed_version: str | None = None
        self._confirmed_modes: FrozenSet[str] = frozenset()
        self._requested_modes: set[str] = set()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def installed_version(self) -> str | None:
        with self._lock:
            return self._installed_version

    @property
    def confirmed_modes(self) -> FrozenSet[str]:
        with self._lock:
            return self._confirmed_modes

    def load(self) -> str | None:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            version, modes = None, frozenset()
        except OSError:
            _LOGGER.warning(
                "Could not read provisioning state at %s, assuming the plugins need re-installation",
                self._path,
                exc_info=True,
            )
            version, modes = None, frozenset()
        else:
            version, modes = self._parse(raw)
        with self._lock:
            self._installed_version = version
            self._confirmed_modes = modes
        return version

    def request(self, mode: str) -> None:
        """Note that ``mode`` is being reconciled and awaits confirmation."""

        with self._lock:
            self._requested_modes.add(mode)

    def is_installed(self, mode: str | None = None) -> bool:
        """Return ``True`` when the running agent version is already confirmed.

        With ``mode`` the answer is also ``False`` unless that mode was part
        of a confirmed pass.
        """

        with self._lock:
            installed = self._installed_version
            confirmed = self._confirmed_modes
        if installed is None:
            return False
        if mode is not None and mode not in confirmed:
            _LOGGER.debug("Install mode %s has not been confirmed yet", mode)
            return False
        try:
            target = normalize_version(self._version_provider())
            _LOGGER.debug("Installed version = %s. Target version = %s", installed, target)
            return target is not None and compare_versions(installed, target) <= 0
        except Exception:
            # if in doubt, it's not installed
            _LOGGER.debug("Unable to compare installed version %s", installed, exc_info=True)
            return False

    def set_installed(self, installed: bool) -> None:
        with self._lock:
            previous = (self._installed_version, self._confirmed_modes)
            if installed:
                version = normalize_version(self._version_provider())
                modes = set(self._requested_modes)
                if version == self._installed_version:
                    modes.update(self._confirmed_modes)
                self._installed_version = version
                self._confirmed_modes = frozenset(modes)
            else:
                self._installed_version = None
                self._confirmed_modes = frozenset()
            self._requested_modes.clear()
            snapshot = (self._installed_version, self._confirmed_modes)
        if snapshot != previous:
            self._save(*snapshot)

    def _parse(self, raw: str) -> Tuple[str | None, FrozenSet[str]]:
        try:
            data: Dict[str, Any] = json.loads(raw)
        except json.JSONDecodeError:
            _LOGGER.warning(
                "Could not deserialize provisioning state at %s, assuming the plugins need re-installation",
                self._path,
            )
            return None, frozenset()
        if not isinstance(data, dict):
            return None, frozenset()
        version = data.get("installed_version")
        if not isinstance(version, str):
            return None, frozenset()
        modes = data.get("modes")
        if not isinstance(modes, list):
            modes = []
        return normalize_version(version), frozenset(mode for mode in modes if isinstance(mode, str))

    def _save(self, version: str | None, modes: FrozenSet[str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps({"installed_version": version, "modes": sorted(modes)}, indent=2, sort_keys=True),
                encoding="utf-8",
            )
        except OSError:
            _LOGGER.warning(
                "Could not serialize provisioning state. If any of the managed plugins are "
                "uninstalled, they may be reinstalled on next restart.",
                exc_info=True,
            )


__all__ = ["InstalledVersionStore", "default_state_path"]

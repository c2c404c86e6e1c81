"""The single rolling status message shown to administrators."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum


class Notice(str, Enum):
    """Status message templates."""

    DOWNLOAD_METADATA = "Downloading update center metadata"
    INSTALLING_PLUGIN = "Installing plugin {0}"
    INSTALLED_PLUGIN = "Installed plugin {0}"
    UPGRADING_PLUGIN = "Upgrading plugin {0} to version {1}"
    UPGRADED_PLUGIN = "Upgraded plugin {0} to version {1}"
    SCHEDULED_RESTART = "Restart scheduled to complete plugin installation"
    RESTART_REQUIRED = "Restart required to complete plugin installation"


@dataclass(frozen=True)
class StatusMessage:
    notice: Notice
    args: tuple[str, ...] = ()

    def render(self) -> str:
        return self.notice.value.format(*self.args)

    def __str__(self) -> str:
        return self.render()


class StatusBoard:
    """Thread-safe holder of the current status and its importance flag."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._message: StatusMessage | None = None
        self._important = False

    def set(self, notice: Notice, *args: object, important: bool | None = None) -> StatusMessage:
        message = StatusMessage(notice, tuple(str(arg) for arg in args))
        with self._lock:
            self._message = message
            if important is not None:
                self._important = important
        return message

    def clear(self) -> None:
        with self._lock:
            self._message = None
            self._important = False

    def get(self) -> StatusMessage | None:
        with self._lock:
            return self._message

    def is_important(self) -> bool:
        with self._lock:
            return self._important


__all__ = ["Notice", "StatusBoard", "StatusMessage"]

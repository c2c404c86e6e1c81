"""Capability interfaces consumed from the CI server host.

The provisioner never reaches into host internals; everything it needs from
the plugin manager, the update center, the security subsystem and the restart
lifecycle is expressed by the protocols below.
"""

from __future__ import annotations

from concurrent.futures import Future
from contextlib import AbstractContextManager
from pathlib import Path
from threading import RLock
from typing import Any, MutableSequence, Protocol


class RestartNotSupportedError(RuntimeError):
    """Raised by :meth:`HostLifecycle.safe_restart` when restarts are disabled."""


class PluginHandle(Protocol):
    """An installed plugin as reported by the host plugin manager."""

    name: str

    def get_version(self) -> str | None:
        """Return the installed version or ``None`` when unknown."""

    def is_enabled(self) -> bool:
        """Return ``True`` when the plugin is enabled for the next start."""

    def is_active(self) -> bool:
        """Return ``True`` when the plugin is loaded and running."""

    def enable(self) -> None:
        """Enable the plugin; raises :class:`OSError` when it cannot persist."""


class PluginManager(Protocol):
    def get_plugin(self, name: str) -> PluginHandle | None:
        """Return the installed plugin called ``name`` if any."""


class FeedPlugin(Protocol):
    """A plugin offered by a feed source."""

    name: str
    version: str
    display_name: str

    def get_installed(self) -> PluginHandle | None:
        """Return the locally installed copy of this plugin, if any."""

    def deploy(self) -> Future[None]:
        """Schedule download and installation, completing when done."""


class UpdateCenter(Protocol):
    """The host's ordered list of feed sources plus install machinery."""

    lock: RLock

    def get_sites(self) -> MutableSequence[Any]:
        """Return the live, mutable list of feed sources."""

    def get_site(self, site_id: str) -> Any | None:
        """Return the feed source registered under ``site_id``."""

    def load(self) -> None:
        """Load the persisted site list from disk."""

    def batch_change(self) -> AbstractContextManager[None]:
        """Return a scope that commits all site list mutations at exit."""

    def update_all_sites(self) -> None:
        """Request a refresh of every registered feed source."""

    def get_plugin_manager(self) -> PluginManager:
        """Return the plugin manager backing this update center."""

    def deploy(self, plugin: FeedPlugin) -> Future[None]:
        """Download and install ``plugin`` on behalf of a feed source."""


class SecurityContext(Protocol):
    """Thread-bound identity switching."""

    system_identity: Any

    def impersonate(self, identity: Any) -> Any:
        """Switch to ``identity`` and return the identity it replaced."""

    def restore(self, previous: Any) -> None:
        """Reinstate ``previous`` as the current identity."""


class HostLifecycle(Protocol):
    def safe_restart(self) -> None:
        """Quiet down and restart once running builds finish.

        Raises :class:`RestartNotSupportedError` when the host cannot restart
        itself.
        """

    def is_quieting_down(self) -> bool:
        """Return ``True`` while a requested restart is still pending."""


class Host(Protocol):
    """Bundle of the host capabilities the provisioning service depends on."""

    plugin_manager: PluginManager
    update_center: UpdateCenter
    security: SecurityContext
    lifecycle: HostLifecycle
    resource_dir: Path | None


__all__ = [
    "FeedPlugin",
    "Host",
    "HostLifecycle",
    "PluginHandle",
    "PluginManager",
    "RestartNotSupportedError",
    "SecurityContext",
    "UpdateCenter",
]

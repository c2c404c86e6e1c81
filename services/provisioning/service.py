"""Facade tying the registrar, reconciler and installer to a host."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from adapters.host import Host
from app.config import ProvisionerConfig
from domain.plugins import InstallMode
from domain.plugins.versioning import is_older_than
from services.provisioning.feed_source import FeedSource, TrustedFeedSource
from services.provisioning.installer import DelayedInstaller
from services.provisioning.models import FeedVerificationError, UnknownFeedSourceError, VerificationResult
from services.provisioning.pending import PendingQueue, Worker
from services.provisioning.reconciler import Reconciler
from services.provisioning.registrar import FeedRegistrar
from services.provisioning.state import InstalledVersionStore
from services.provisioning.status import StatusBoard
from services.provisioning.trust import TrustAnchorStore

_LOGGER = logging.getLogger(__name__)


class ProvisioningService:
    """Keep the host's plugins in line with an :class:`InstallMode` manifest."""

    def __init__(
        self,
        host: Host,
        *,
        config: ProvisionerConfig,
        state: InstalledVersionStore,
        trust_store: TrustAnchorStore,
        status: StatusBoard | None = None,
        data_dir: Path | None = None,
        default_mode: InstallMode = InstallMode.FULL,
    ) -> None:
        self._host = host
        self._config = config
        self._state = state
        self._trust_store = trust_store
        self._status = status or StatusBoard()
        self._data_dir = data_dir
        self._default_mode = default_mode
        self._queue = PendingQueue()
        self._registrar = FeedRegistrar(
            config.feed,
            trusted_factory=self._new_trusted_source,
            default_factory=self._new_default_source,
            plugin_manager=host.plugin_manager,
        )
        self._reconciler = Reconciler(
            host.plugin_manager,
            self._queue,
            state,
            self._status,
            self._new_worker,
        )

    @property
    def queue(self) -> PendingQueue:
        return self._queue

    @property
    def worker(self) -> Worker | None:
        return self._queue.worker

    @property
    def status(self) -> StatusBoard:
        return self._status

    def start(self) -> Worker | None:
        """Startup hook: load state, register the feed and reconcile."""

        self._state.load()
        self.add_update_center(refresh=False)
        return self.install_plugins(self._default_mode)

    def add_update_center(self, refresh: bool = True) -> bool:
        return self._registrar.ensure_registered(self._host.update_center, refresh=refresh)

    def install_plugins(self, mode: InstallMode | str) -> Worker | None:
        if isinstance(mode, str):
            mode = InstallMode.from_name(mode)
        return self._reconciler.reconcile(mode)

    def get_status(self) -> str | None:
        message = self._status.get()
        return message.render() if message is not None else None

    def is_status_important(self) -> bool:
        return self._status.is_important()

    def is_everything_installed(self, mode: InstallMode | None = None) -> bool:
        """Return ``True`` when every required plugin of ``mode`` is present and current."""

        mode = mode or self._default_mode
        for dependency in mode.dependencies:
            if dependency.optional:
                continue
            plugin = self._host.plugin_manager.get_plugin(dependency.name)
            if plugin is None or is_older_than(plugin.get_version(), dependency.min_version):
                return False
        return True

    def post_back(self, site_id: str, payload: str | Mapping[str, Any]) -> VerificationResult:
        """Hand a freshly fetched feed document to the source registered as ``site_id``.

        Raises :class:`UnknownFeedSourceError` for unregistered ids,
        :class:`FeedVerificationError` when the signature check fails and
        :class:`ValueError` for malformed documents.
        """

        site = self._host.update_center.get_site(site_id)
        if site is None:
            raise UnknownFeedSourceError(f"No update site registered with id {site_id!r}")
        result = site.post_back(payload)
        if result.is_error:
            raise FeedVerificationError(result.message or "Feed verification failed")
        if result.message:
            _LOGGER.warning("Accepted update center data for %s with a warning: %s", site_id, result.message)
        worker = self._queue.worker
        if isinstance(worker, DelayedInstaller):
            worker.wake()
        return result

    def _new_trusted_source(self) -> TrustedFeedSource:
        feed = self._config.feed
        return TrustedFeedSource(
            feed.trusted_id,
            feed.trusted_url,
            trust_store=self._trust_store,
            data_dir=self._data_dir,
            due_interval_seconds=feed.due_interval_seconds,
            retry_backoff_seconds=feed.retry_backoff_seconds,
        )

    def _new_default_source(self) -> FeedSource:
        feed = self._config.feed
        return FeedSource(feed.default_id, feed.default_url, data_dir=self._data_dir)

    def _new_worker(self) -> DelayedInstaller:
        return DelayedInstaller(
            self._queue,
            update_center=self._host.update_center,
            site_id=self._config.feed.trusted_id,
            security=self._host.security,
            lifecycle=self._host.lifecycle,
            status=self._status,
            state=self._state,
            config=self._config.installer,
        )


__all__ = ["ProvisioningService"]

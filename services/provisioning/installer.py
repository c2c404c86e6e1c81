"""Background worker that drains the pending queue and requests a restart."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

from adapters.host import (
    FeedPlugin,
    HostLifecycle,
    PluginHandle,
    RestartNotSupportedError,
    SecurityContext,
    UpdateCenter,
)
from app.config import InstallerConfig
from domain.plugins import Dependency
from domain.plugins.versioning import is_older_than
from services.provisioning.feed_source import NEVER_FETCHED
from services.provisioning.models import InstallerState
from services.provisioning.pending import DrainView, PendingQueue
from services.provisioning.privilege import elevated
from services.provisioning.state import InstalledVersionStore
from services.provisioning.status import Notice, StatusBoard, StatusMessage

_LOGGER = logging.getLogger(__name__)


class RateLimiter:
    """Suppress repeated warnings until a hold period has elapsed."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._next_allowed = 0.0

    def ready(self) -> bool:
        return self._clock() >= self._next_allowed

    def hold_for(self, seconds: float) -> None:
        self._next_allowed = self._clock() + seconds

    def reset(self) -> None:
        self._next_allowed = 0.0


class QuietDownWatcher:
    """Clear the restart notice once the host stops quieting down."""

    def __init__(
        self,
        lifecycle: HostLifecycle,
        status: StatusBoard,
        expected: StatusMessage,
        *,
        interval: float = 1.0,
    ) -> None:
        self._lifecycle = lifecycle
        self._status = status
        self._expected = expected
        self._interval = interval
        self._thread: threading.Thread | None = None

    def poll(self) -> bool:
        """Return ``True`` once watching is over."""

        if self._lifecycle.is_quieting_down():
            return False
        if self._status.get() == self._expected:
            _LOGGER.info("Restart request was cancelled, clearing the status message")
            self._status.clear()
        return True

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run, name="provisioner-quiet-down", daemon=True)
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self.poll():
            time.sleep(self._interval)


class DelayedInstaller:
    """Drain the pending queue through the trusted feed, then restart the host.

    The worker owns one daemon thread.  Each tick installs or upgrades queued
    plugins head-first; a plugin leaves the queue only after its deploy
    succeeded or it turned out to be installed already.  Once the queue is
    empty the worker asks the host for a safe restart, unless it found the
    queue already emptied by someone else and settles quietly.
    """

    def __init__(
        self,
        queue: PendingQueue,
        *,
        update_center: UpdateCenter,
        site_id: str,
        security: SecurityContext,
        lifecycle: HostLifecycle,
        status: StatusBoard,
        state: InstalledVersionStore,
        config: InstallerConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._queue = queue
        self._update_center = update_center
        self._site_id = site_id
        self._security = security
        self._lifecycle = lifecycle
        self._status = status
        self._installed_version = state
        self._config = config
        self._limiter = RateLimiter(clock)
        self._wakeup = threading.Event()
        self._thread: threading.Thread | None = None
        self._completed = 0
        self.state = InstallerState.DRAINING
        self.watcher: QuietDownWatcher | None = None

    def start(self) -> None:
        self._thread = threading.Thread(target=self.run, name="provisioner-installer", daemon=True)
        self._thread.start()

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def wake(self) -> None:
        """Cut the current wait short so the next tick runs immediately."""

        self._wakeup.set()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def run(self) -> None:
        try:
            while self._tick_safely():
                self._wakeup.wait(self._config.tick_seconds)
                self._wakeup.clear()
            self._finish()
        finally:
            self._cleanup()

    def tick(self) -> bool:
        """Run one drain pass; return ``True`` while work remains."""

        site = self._update_center.get_site(self._site_id)
        if site is None or site.data_timestamp == NEVER_FETCHED:
            _LOGGER.debug("Waiting for update center metadata from %s", self._site_id)
            self._status.set(Notice.DOWNLOAD_METADATA)
            return True
        with self._queue.draining() as pending:
            return self._progress(site, pending)

    def _tick_safely(self) -> bool:
        try:
            return self.tick()
        except Exception:
            _LOGGER.warning("Plugin installation pass failed, will retry", exc_info=True)
            return True

    def _progress(self, site: Any, pending: DrainView) -> bool:
        while not pending.is_empty():
            dependency = pending.peek()
            if dependency is None:
                break
            entry = site.get_plugin(dependency.name)
            if entry is None:
                if self._limiter.ready():
                    _LOGGER.warning(
                        "Cannot find plugin %s in update center %s, will retry",
                        dependency.name,
                        self._site_id,
                    )
                    self._limiter.hold_for(self._config.missing_warning_interval_seconds)
                break

            installed = entry.get_installed()
            if installed is not None and installed.is_enabled():
                if is_older_than(installed.get_version(), dependency.min_version):
                    if not self._upgrade(dependency, entry, installed):
                        break
                else:
                    _LOGGER.info("Detected previous installation of %s", dependency.name)
                pending.pop()
                self._completed += 1
            else:
                if not self._install(dependency, entry):
                    break
                pending.pop()
                self._completed += 1
        return not pending.is_empty()

    def _install(self, dependency: Dependency, entry: FeedPlugin) -> bool:
        _LOGGER.info("Installing %s", dependency.name)
        self._status.set(Notice.INSTALLING_PLUGIN, entry.display_name)
        if not self._deploy(dependency, entry):
            return False
        self._status.set(Notice.INSTALLED_PLUGIN, entry.display_name)
        return True

    def _upgrade(self, dependency: Dependency, entry: FeedPlugin, installed: PluginHandle) -> bool:
        _LOGGER.info(
            "Upgrading %s from %s to %s",
            dependency.name,
            installed.get_version(),
            entry.version,
        )
        self._status.set(Notice.UPGRADING_PLUGIN, entry.display_name, entry.version)
        if not self._deploy(dependency, entry):
            return False
        self._status.set(Notice.UPGRADED_PLUGIN, entry.display_name, entry.version)
        return True

    def _deploy(self, dependency: Dependency, entry: FeedPlugin) -> bool:
        try:
            with elevated(self._security):
                entry.deploy().result()
        except Exception:
            if self._limiter.ready():
                _LOGGER.warning("Could not deploy %s, will retry", dependency.name, exc_info=True)
                self._limiter.hold_for(self._config.failure_warning_interval_seconds)
            return False
        self._limiter.reset()
        return True

    def _finish(self) -> None:
        if self._completed == 0:
            _LOGGER.info("Queue was emptied elsewhere, no restart required")
            self._status.clear()
            self.state = InstallerState.EMPTY_SETTLED
            return

        _LOGGER.info("Plugin installation complete, scheduling a restart")
        scheduled = self._status.set(Notice.SCHEDULED_RESTART, important=True)
        self.state = InstallerState.RESTART_PENDING
        self._wakeup.clear()
        self._wakeup.wait(self._config.restart_grace_seconds)
        try:
            self._lifecycle.safe_restart()
        except RestartNotSupportedError:
            _LOGGER.warning("Host cannot restart itself, a manual restart is required")
            self._status.set(Notice.RESTART_REQUIRED, important=True)
            self.state = InstallerState.RESTART_UNSUPPORTED
            return
        self.state = InstallerState.RESTARTED
        self.watcher = QuietDownWatcher(
            self._lifecycle,
            self._status,
            scheduled,
            interval=self._config.quiet_down_poll_seconds,
        )
        self.watcher.start()

    def _cleanup(self) -> None:
        if self._queue.release_worker(self):
            self._installed_version.set_installed(True)


__all__ = ["DelayedInstaller", "QuietDownWatcher", "RateLimiter"]

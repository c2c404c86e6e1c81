"""Diff the manifest against installed plugins and queue the difference."""

from __future__ import annotations

import logging
from typing import Callable

from adapters.host import PluginHandle, PluginManager
from domain.plugins import Dependency, InstallMode
from domain.plugins.versioning import is_older_than
from services.provisioning.pending import PendingQueue, Worker
from services.provisioning.state import InstalledVersionStore
from services.provisioning.status import Notice, StatusBoard

_LOGGER = logging.getLogger(__name__)


class Reconciler:
    """Queue installs and upgrades needed to satisfy an :class:`InstallMode`.

    Dependencies are visited in manifest order, which is the only ordering the
    installer honours.  Mandatory plugins that are present but disabled are
    enabled on the spot, independently of whether they also need an upgrade.
    """

    def __init__(
        self,
        plugin_manager: PluginManager,
        queue: PendingQueue,
        state: InstalledVersionStore,
        status: StatusBoard,
        worker_factory: Callable[[], Worker],
    ) -> None:
        self._plugin_manager = plugin_manager
        self._queue = queue
        self._state = state
        self._status = status
        self._worker_factory = worker_factory

    def reconcile(self, mode: InstallMode) -> Worker | None:
        """Queue the deltas for ``mode``; return the worker started, if any."""

        _LOGGER.info("Checking that the %s plugins have been installed.", mode.label)
        if self._state.is_installed(mode.label):
            for dependency in mode.dependencies:
                if dependency.mandatory:
                    self._enable_if_disabled(dependency, self._plugin_manager.get_plugin(dependency.name))
            _LOGGER.info("Plugin installation previously completed, will not check or reinstall")
            return None

        self._state.request(mode.label)
        for dependency in mode.dependencies:
            _LOGGER.debug("Checking %s.", dependency.name)
            plugin = self._plugin_manager.get_plugin(dependency.name)
            if plugin is None:
                if not dependency.optional:
                    self._queue.enqueue(dependency)
            elif is_older_than(plugin.get_version(), dependency.min_version):
                _LOGGER.debug(
                    "%s %s is older than required %s",
                    dependency.name,
                    plugin.get_version(),
                    dependency.min_version,
                )
                self._queue.enqueue(dependency)
            if dependency.mandatory:
                self._enable_if_disabled(dependency, plugin)

        worker = self._queue.start_worker_if_idle(self._start_worker)
        if worker is not None:
            _LOGGER.info("Started background thread for plugin installation")
            return worker
        if self._queue.is_empty():
            _LOGGER.info("Nothing to do")
            self._state.set_installed(True)
        else:
            _LOGGER.info("Plugin installation already in progress")
        return None

    def _start_worker(self) -> Worker:
        self._status.set(Notice.DOWNLOAD_METADATA)
        return self._worker_factory()

    def _enable_if_disabled(self, dependency: Dependency, plugin: PluginHandle | None) -> None:
        if plugin is None or plugin.is_enabled():
            return
        _LOGGER.debug("Enabling %s", dependency.name)
        try:
            plugin.enable()
        except (OSError, RuntimeError):
            _LOGGER.warning("Could not enable %s", dependency.name, exc_info=True)


__all__ = ["Reconciler"]

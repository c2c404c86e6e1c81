"""Keep exactly one trusted feed source registered with the host."""

from __future__ import annotations

import logging
from typing import Any, Callable

from adapters.host import PluginManager, UpdateCenter
from app.config import FeedConfig
from services.provisioning.feed_source import FeedSource, TrustedFeedSource

_LOGGER = logging.getLogger(__name__)


class FeedRegistrar:
    """Migrate the host's site list to a single canonical trusted feed.

    Legacy ids, legacy urls and any other :class:`TrustedFeedSource` count as
    candidates; only the first candidate that is a trusted source with the
    canonical id and url survives.  When ``delegate_plugin`` is installed and
    active it owns the feed instead, and every trusted source is removed.
    """

    def __init__(
        self,
        config: FeedConfig,
        *,
        trusted_factory: Callable[[], TrustedFeedSource],
        default_factory: Callable[[], FeedSource] | None = None,
        plugin_manager: PluginManager | None = None,
    ) -> None:
        self._config = config
        self._trusted_factory = trusted_factory
        self._default_factory = default_factory or (lambda: FeedSource(config.default_id, config.default_url))
        self._plugin_manager = plugin_manager

    def ensure_registered(self, update_center: UpdateCenter, *, refresh: bool = False) -> bool:
        """Apply the migration; return ``True`` when the site list changed.

        The whole scan and mutation run under the update center's lock and the
        mutations are committed in one batch.  If the host's batch primitive
        does not roll back, a failure part-way leaves earlier removals applied.
        """

        _LOGGER.debug("Checking that the trusted update center has been configured.")
        with update_center.lock:
            if self._delegate_is_active():
                changed = self._remove_trusted_sources(update_center)
            else:
                changed = self._migrate(update_center)
        if changed and refresh:
            update_center.update_all_sites()
        return changed

    def _delegate_is_active(self) -> bool:
        name = self._config.delegate_plugin
        if not name or self._plugin_manager is None:
            return False
        plugin = self._plugin_manager.get_plugin(name)
        return plugin is not None and plugin.is_active()

    def _remove_trusted_sources(self, update_center: UpdateCenter) -> bool:
        sites = update_center.get_sites()
        for_removal = [site for site in sites if isinstance(site, TrustedFeedSource)]
        if not for_removal:
            return False
        _LOGGER.info(
            "Plugin %s manages the update center, removing %d trusted feed source(s)",
            self._config.delegate_plugin,
            len(for_removal),
        )
        with update_center.batch_change():
            for site in for_removal:
                _remove_identical(sites, site)
        return True

    def _migrate(self, update_center: UpdateCenter) -> bool:
        sites = update_center.get_sites()
        if not sites:
            # likely the list has not been loaded yet
            update_center.load()
            sites = update_center.get_sites()
            for site in sites:
                if isinstance(site, TrustedFeedSource):
                    # loaded sources fetch afresh instead of trusting a stale timestamp
                    site.reset_after_load()

        found = False
        for_removal: list[Any] = []
        for site in sites:
            _LOGGER.debug("Update site %s class %s url %s", site.id, type(site).__name__, site.url)
            if not self._is_candidate(site):
                continue
            _LOGGER.debug(
                "Found possible match: class = %s url = %s id = %s",
                type(site).__name__,
                site.url,
                site.id,
            )
            valid = self._is_canonical(site)
            if found or not valid:
                # remove old and duplicate entries
                for_removal.append(site)
            found = found or valid

        _LOGGER.debug("Found=%s Removing=%s", found, for_removal)
        if found and not for_removal:
            return False

        with update_center.batch_change():
            for site in for_removal:
                _LOGGER.info("Removing legacy update site %s (%s) from list of update centers", site.id, site.url)
                _remove_identical(sites, site)
            if not sites:
                _LOGGER.info("Adding default update center to list of update centers as it was missing")
                sites.append(self._attached(self._default_factory(), update_center))
            if not found:
                _LOGGER.info("Adding trusted update center to list of update centers")
                sites.append(self._attached(self._trusted_factory(), update_center))
        return True

    def _is_candidate(self, site: Any) -> bool:
        return (
            site.url in self._config.matching_urls
            or site.id in self._config.matching_ids
            or isinstance(site, TrustedFeedSource)
        )

    def _is_canonical(self, site: Any) -> bool:
        return (
            isinstance(site, TrustedFeedSource)
            and site.url == self._config.trusted_url
            and site.id == self._config.trusted_id
        )

    @staticmethod
    def _attached(site: FeedSource, update_center: UpdateCenter) -> FeedSource:
        site.attach(update_center)
        return site


def _remove_identical(sites: Any, target: Any) -> None:
    for index, site in enumerate(sites):
        if site is target:
            del sites[index]
            return


__all__ = ["FeedRegistrar"]

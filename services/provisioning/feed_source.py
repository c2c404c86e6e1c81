"""Feed sources (update sites) and the plugin descriptors they publish."""

from __future__ import annotations

import json
import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping

from adapters.host import PluginHandle, UpdateCenter
from services.provisioning.models import VerificationResult
from services.provisioning.trust import TrustAnchorStore
from services.provisioning.verifier import SignatureVerifier

_LOGGER = logging.getLogger(__name__)

NEVER_FETCHED = -1
SUPPORTED_DOCUMENT_VERSION = 1


def _now_millis() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class FeedEntry:
    """A plugin offered by a feed source."""

    name: str
    version: str
    display_name: str
    source: "FeedSource" = field(repr=False, compare=False)
    url: str | None = None

    def get_installed(self) -> PluginHandle | None:
        return self.source.require_update_center().get_plugin_manager().get_plugin(self.name)

    def deploy(self) -> Future[None]:
        return self.source.require_update_center().deploy(self)


class FeedSource:
    """A plain update site identified by ``(id, url)``.

    ``data_timestamp`` is the epoch-millis time the current document was
    accepted, or ``-1`` when no document has been fetched yet.
    """

    def __init__(
        self,
        site_id: str,
        url: str,
        *,
        data_dir: Path | None = None,
        due_interval_seconds: int = 24 * 60 * 60,
        retry_backoff_seconds: int = 15,
        clock: Callable[[], int] = _now_millis,
    ) -> None:
        self.id = site_id
        self.url = url
        self.data_dir = data_dir
        self.due_interval_seconds = due_interval_seconds
        self.retry_backoff_seconds = retry_backoff_seconds
        self.never_update = False
        self.data_timestamp = NEVER_FETCHED
        self.last_attempt = NEVER_FETCHED
        self.update_center: UpdateCenter | None = None
        self._clock = clock
        self._lock = threading.RLock()
        self._document: Mapping[str, Any] | None = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, url={self.url!r})"

    def attach(self, update_center: UpdateCenter) -> None:
        self.update_center = update_center

    def require_update_center(self) -> UpdateCenter:
        if self.update_center is None:
            raise RuntimeError(f"Feed source {self.id!r} is not attached to an update center")
        return self.update_center

    @property
    def data_file(self) -> Path | None:
        if self.data_dir is None:
            return None
        return self.data_dir / f"{self.id}.json"

    @property
    def document(self) -> Mapping[str, Any] | None:
        with self._lock:
            return self._document

    def reset_after_load(self) -> None:
        """Forget the in-memory timestamp after the site list is deserialized."""

        self.data_timestamp = NEVER_FETCHED

    def get_plugin(self, name: str) -> FeedEntry | None:
        document = self.document
        if document is None:
            return None
        plugins = document.get("plugins")
        if not isinstance(plugins, Mapping):
            return None
        entry = plugins.get(name)
        if not isinstance(entry, Mapping):
            return None
        version = entry.get("version")
        if not isinstance(version, str) or not version.strip():
            return None
        title = entry.get("title")
        url = entry.get("url")
        return FeedEntry(
            name=name,
            version=version.strip(),
            display_name=title if isinstance(title, str) and title.strip() else name,
            source=self,
            url=url if isinstance(url, str) else None,
        )

    def is_due(self) -> bool:
        """Return ``True`` when the document should be fetched again.

        A positive answer records the attempt so callers back off for at least
        ``retry_backoff_seconds`` before the next one.
        """

        if self.never_update:
            return False
        if self.data_timestamp == NEVER_FETCHED:
            self._restore_from_data_file()
        now = self._clock()
        due = (
            now - self.data_timestamp > self.due_interval_seconds * 1000
            and now - self.last_attempt > self.retry_backoff_seconds * 1000
        )
        if due:
            self.last_attempt = now
        return due

    def post_back(self, payload: str | Mapping[str, Any]) -> VerificationResult:
        """Accept a freshly fetched document after checking it.

        Raises :class:`ValueError` for unparseable documents or unsupported
        document versions.
        """

        self.last_attempt = self._clock()
        document = json.loads(payload) if isinstance(payload, str) else dict(payload)
        if not isinstance(document, dict):
            raise ValueError("Update center document must be a JSON object")
        version = document.get("updateCenterVersion")
        if version != SUPPORTED_DOCUMENT_VERSION:
            raise ValueError(f"Unrecognized update center version: {version}")

        result = self.verify_signature(document)
        if result.is_error:
            _LOGGER.error("Rejected update center data for %s: %s", self.id, result.message)
            return result

        self._store(document)
        _LOGGER.info("Obtained the latest update center data file for update site %s", self.id)
        return result

    def verify_signature(self, document: Mapping[str, Any]) -> VerificationResult:
        """Plain sources leave signature checking to the host."""

        return VerificationResult.ok()

    def _store(self, document: Mapping[str, Any]) -> None:
        with self._lock:
            self._document = document
            self.data_timestamp = self._clock()
        data_file = self.data_file
        if data_file is None:
            return
        try:
            data_file.parent.mkdir(parents=True, exist_ok=True)
            data_file.write_text(json.dumps(document), encoding="utf-8")
        except OSError:
            _LOGGER.warning("Could not write update center data for %s to %s", self.id, data_file, exc_info=True)

    def _restore_from_data_file(self) -> None:
        data_file = self.data_file
        if data_file is None or not data_file.is_file():
            return
        try:
            document = json.loads(data_file.read_text(encoding="utf-8"))
            modified = int(data_file.stat().st_mtime * 1000)
        except (OSError, json.JSONDecodeError):
            _LOGGER.warning("Ignoring unreadable update center data at %s", data_file, exc_info=True)
            return
        if isinstance(document, dict):
            with self._lock:
                self._document = document
                self.data_timestamp = modified


class TrustedFeedSource(FeedSource):
    """An update site whose documents must be signed by the pinned root."""

    def __init__(self, site_id: str, url: str, *, trust_store: TrustAnchorStore, **kwargs: Any) -> None:
        super().__init__(site_id, url, **kwargs)
        self.trust_store = trust_store

    def verify_signature(self, document: Mapping[str, Any]) -> VerificationResult:
        verifier = SignatureVerifier(self.trust_store, source_name=f"update site '{self.id}'")
        return verifier.verify(document)

    def verify_stored_document(self) -> VerificationResult:
        """Re-check the document currently held by this source."""

        document = self.document
        if document is None:
            return VerificationResult.error(f"No update center data for update site '{self.id}'")
        return self.verify_signature(document)


__all__ = [
    "FeedEntry",
    "FeedSource",
    "NEVER_FETCHED",
    "TrustedFeedSource",
]

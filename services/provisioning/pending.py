"""The shared queue of pending installs and the worker that drains it."""

from __future__ import annotations

import logging
import threading
from collections import deque
from contextlib import contextmanager
from typing import Callable, Deque, Iterator, Protocol, TypeVar

from domain.plugins import Dependency

_LOGGER = logging.getLogger(__name__)


class Worker(Protocol):
    def start(self) -> None: ...

    def is_alive(self) -> bool: ...


W = TypeVar("W", bound=Worker)


class DrainView:
    """Head-of-queue access handed out while the queue lock is held."""

    def __init__(self, items: Deque[Dependency]) -> None:
        self._items = items

    def peek(self) -> Dependency | None:
        return self._items[0] if self._items else None

    def pop(self) -> Dependency:
        return self._items.popleft()

    def is_empty(self) -> bool:
        return not self._items


class PendingQueue:
    """FIFO of dependencies awaiting installation.

    One lock guards both the items and the worker marker, so "is a worker
    running?" and "start one" happen atomically with respect to enqueues and
    drains.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: Deque[Dependency] = deque()
        self._worker: Worker | None = None

    def enqueue(self, dependency: Dependency) -> bool:
        """Append ``dependency`` unless an entry with the same name is already queued."""

        with self._lock:
            if any(item.name == dependency.name for item in self._items):
                _LOGGER.debug("Installation of %s is already scheduled", dependency.name)
                return False
            _LOGGER.debug("Scheduling installation of %s", dependency.name)
            self._items.append(dependency)
            return True

    def is_empty(self) -> bool:
        with self._lock:
            return not self._items

    def snapshot(self) -> tuple[Dependency, ...]:
        with self._lock:
            return tuple(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    @property
    def worker(self) -> Worker | None:
        with self._lock:
            return self._worker

    def start_worker_if_idle(self, factory: Callable[[], W]) -> W | None:
        """Start a worker built by ``factory`` unless one is alive or nothing is queued."""

        with self._lock:
            if not self._items:
                return None
            if self._worker is not None and self._worker.is_alive():
                return None
            worker = factory()
            self._worker = worker
            worker.start()
            return worker

    def release_worker(self, worker: Worker) -> bool:
        """Clear the marker if it still names ``worker``; return whether the queue is empty."""

        with self._lock:
            if self._worker is worker:
                self._worker = None
            return not self._items

    @contextmanager
    def draining(self) -> Iterator[DrainView]:
        with self._lock:
            yield DrainView(self._items)


__all__ = ["DrainView", "PendingQueue", "Worker"]

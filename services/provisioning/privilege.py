"""Scoped elevation to the host's system identity."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from adapters.host import SecurityContext

_LOGGER = logging.getLogger(__name__)


@contextmanager
def elevated(security: SecurityContext) -> Iterator[None]:
    """Run the enclosed block as the system identity.

    The previous identity is restored on every exit path, including
    exceptions raised by the block.
    """

    previous = security.impersonate(security.system_identity)
    _LOGGER.debug("Impersonating system identity (previous=%r)", previous)
    try:
        yield
    finally:
        security.restore(previous)


__all__ = ["elevated"]

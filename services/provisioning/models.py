"""Data models and errors shared by the provisioning modules."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from adapters.host import RestartNotSupportedError
from domain.plugins import UnknownInstallModeError


class ProvisioningError(RuntimeError):
    """Base class for provisioning failures surfaced to callers."""


class FeedVerificationError(ProvisioningError):
    """Raised when a posted feed document fails signature verification."""


class UnknownFeedSourceError(ProvisioningError):
    """Raised when a feed document is posted for an unregistered site id."""


class VerificationKind(str, Enum):
    OK = "ok"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of checking a feed document's signature."""

    kind: VerificationKind
    message: str | None = None

    @classmethod
    def ok(cls) -> "VerificationResult":
        return cls(VerificationKind.OK)

    @classmethod
    def warning(cls, message: str) -> "VerificationResult":
        return cls(VerificationKind.WARNING, message)

    @classmethod
    def error(cls, message: str) -> "VerificationResult":
        return cls(VerificationKind.ERROR, message)

    @property
    def is_error(self) -> bool:
        return self.kind is VerificationKind.ERROR

    @property
    def is_ok(self) -> bool:
        return self.kind is VerificationKind.OK


class InstallerState(str, Enum):
    """Lifecycle of a delayed installer worker."""

    DRAINING = "draining"
    EMPTY_SETTLED = "empty_settled"
    RESTART_PENDING = "restart_pending"
    RESTARTED = "restarted"
    RESTART_UNSUPPORTED = "restart_unsupported"


__all__ = [
    "FeedVerificationError",
    "InstallerState",
    "ProvisioningError",
    "RestartNotSupportedError",
    "UnknownFeedSourceError",
    "UnknownInstallModeError",
    "VerificationKind",
    "VerificationResult",
]

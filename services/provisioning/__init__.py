"""Public API for the plugin provisioning package."""

from __future__ import annotations

from services.provisioning.builder import build_provisioning_service, schedule_startup_provisioning
from services.provisioning.feed_source import NEVER_FETCHED, FeedEntry, FeedSource, TrustedFeedSource
from services.provisioning.installer import DelayedInstaller, QuietDownWatcher, RateLimiter
from services.provisioning.models import (
    FeedVerificationError,
    InstallerState,
    ProvisioningError,
    RestartNotSupportedError,
    UnknownFeedSourceError,
    UnknownInstallModeError,
    VerificationKind,
    VerificationResult,
)
from services.provisioning.pending import PendingQueue
from services.provisioning.reconciler import Reconciler
from services.provisioning.registrar import FeedRegistrar
from services.provisioning.service import ProvisioningService
from services.provisioning.state import InstalledVersionStore
from services.provisioning.status import Notice, StatusBoard, StatusMessage
from services.provisioning.trust import TrustAnchorStore
from services.provisioning.verifier import SignatureVerifier

__all__ = [
    "NEVER_FETCHED",
    "DelayedInstaller",
    "FeedEntry",
    "FeedRegistrar",
    "FeedSource",
    "FeedVerificationError",
    "InstalledVersionStore",
    "InstallerState",
    "Notice",
    "PendingQueue",
    "ProvisioningError",
    "ProvisioningService",
    "QuietDownWatcher",
    "RateLimiter",
    "Reconciler",
    "RestartNotSupportedError",
    "SignatureVerifier",
    "StatusBoard",
    "StatusMessage",
    "TrustAnchorStore",
    "TrustedFeedSource",
    "UnknownFeedSourceError",
    "UnknownInstallModeError",
    "VerificationKind",
    "VerificationResult",
    "build_provisioning_service",
    "schedule_startup_provisioning",
]

"""Helpers for constructing and scheduling the provisioning service."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable

from adapters.host import Host
from app.config import ProvisionerConfig, get_provisioner_config
from app.version import get_agent_version
from services.provisioning.models import ProvisioningError
from services.provisioning.service import ProvisioningService
from services.provisioning.state import InstalledVersionStore
from services.provisioning.trust import TrustAnchorStore
from shared.logging_config import ensure_app_logging

_LOGGER = logging.getLogger(__name__)


def _build_trust_store(host: Host, config: ProvisionerConfig) -> TrustAnchorStore:
    host_root_dir = None
    if host.resource_dir is not None:
        host_root_dir = Path(host.resource_dir) / config.trust.host_root_ca_dir
    return TrustAnchorStore.from_resources(config.trust.pinned_root_resource, host_root_dir)


def build_provisioning_service(
    host: Host,
    *,
    config: ProvisionerConfig | None = None,
    state_path: Path | None = None,
    data_dir: Path | None = None,
) -> ProvisioningService:
    """Construct a :class:`ProvisioningService` for ``host``."""

    config = config or get_provisioner_config()
    state = InstalledVersionStore(state_path, version_provider=get_agent_version)
    if data_dir is None and host.resource_dir is not None:
        data_dir = Path(host.resource_dir) / "updates"
    return ProvisioningService(
        host,
        config=config,
        state=state,
        trust_store=_build_trust_store(host, config),
        data_dir=data_dir,
    )


def _run_startup(service: ProvisioningService, on_complete: Callable[[], None] | None) -> None:
    try:
        service.start()
    except ProvisioningError as exc:
        _LOGGER.warning("Automatic plugin provisioning failed: %s", exc)
    except Exception:  # pragma: no cover - startup must not take the host down
        _LOGGER.exception("Unexpected error while provisioning plugins")
    finally:
        if on_complete:
            on_complete()


def schedule_startup_provisioning(
    host: Host,
    *,
    enabled: bool = True,
    on_complete: Callable[[], None] | None = None,
) -> ProvisioningService | None:
    """Build the service and run its startup hook on a daemon thread."""

    if not enabled:
        _LOGGER.debug("Automatic plugin provisioning disabled")
        return None

    ensure_app_logging()
    service = build_provisioning_service(host)
    thread = threading.Thread(
        target=_run_startup,
        args=(service, on_complete),
        name="provisioner-startup",
        daemon=True,
    )
    thread.start()
    return service


__all__ = [
    "build_provisioning_service",
    "schedule_startup_provisioning",
]

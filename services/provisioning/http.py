"""HTTP endpoints for feed post-backs and provisioning status."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, FastAPI, HTTPException

from domain.plugins import UnknownInstallModeError
from services.provisioning.models import FeedVerificationError, UnknownFeedSourceError
from services.provisioning.service import ProvisioningService

_LOGGER = logging.getLogger(__name__)


def create_router(service: ProvisioningService) -> APIRouter:
    router = APIRouter()

    @router.post("/updateCenter/byId/{site_id}/postBack")
    def post_back(site_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            result = service.post_back(site_id, payload)
        except UnknownFeedSourceError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except FeedVerificationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except ValueError as exc:
            _LOGGER.warning("Rejected malformed update center data for %s: %s", site_id, exc)
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"ok": True, "kind": result.kind.value, "message": result.message}

    @router.get("/provisioning/status")
    def status() -> dict[str, Any]:
        return {
            "status": service.get_status(),
            "important": service.is_status_important(),
            "everything_installed": service.is_everything_installed(),
        }

    @router.post("/provisioning/install")
    def install(mode: str = "full") -> dict[str, Any]:
        try:
            worker = service.install_plugins(mode)
        except UnknownInstallModeError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {
            "ok": True,
            "mode": mode,
            "worker_started": worker is not None,
            "pending": [dependency.name for dependency in service.queue.snapshot()],
        }

    return router


def create_app(service: ProvisioningService) -> FastAPI:
    app = FastAPI(title="plugin_provisioner")
    app.include_router(create_router(service))
    return app


__all__ = ["create_app", "create_router"]

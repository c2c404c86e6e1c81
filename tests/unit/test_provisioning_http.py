from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from domain.plugins import InstallMode
from services.provisioning.http import create_app
from services.provisioning.service import ProvisioningService
from tests.unit.provisioning_test_utils import (
    FakeHost,
    FakePlugin,
    feed_document,
    make_config,
    make_root,
    make_state,
    sign_document,
    trust_store_for,
)

_ROOT = make_root()


@pytest.fixture
def host() -> FakeHost:
    host = FakeHost()
    for dependency in InstallMode.FULL.dependencies:
        host.plugin_manager.add(FakePlugin(dependency.name, dependency.min_version or "1.0"))
    return host


@pytest.fixture
def service(host: FakeHost, tmp_path: Path) -> ProvisioningService:
    service = ProvisioningService(
        host,
        config=make_config(delegate_plugin=None),
        state=make_state(tmp_path),
        trust_store=trust_store_for(_ROOT),
    )
    service.add_update_center(refresh=False)
    return service


@pytest.fixture
def client(service: ProvisioningService) -> TestClient:
    return TestClient(create_app(service))


def test_status_reports_installation_state(client: TestClient) -> None:
    response = client.get("/provisioning/status")

    assert response.status_code == 200
    assert response.json() == {"status": None, "important": False, "everything_installed": True}


def test_signed_post_back_is_accepted(client: TestClient, service: ProvisioningService) -> None:
    document = sign_document(feed_document({"git": "2.0"}), _ROOT)

    response = client.post("/updateCenter/byId/jenkins-enterprise/postBack", json=document)

    assert response.status_code == 200
    assert response.json() == {"ok": True, "kind": "ok", "message": None}


def test_unsigned_post_back_is_rejected(client: TestClient) -> None:
    response = client.post("/updateCenter/byId/jenkins-enterprise/postBack", json=feed_document({"git": "2.0"}))

    assert response.status_code == 400
    assert "No signature block" in response.json()["detail"]


def test_unsupported_document_version_is_rejected(client: TestClient) -> None:
    response = client.post(
        "/updateCenter/byId/jenkins-enterprise/postBack",
        json=feed_document({}, updateCenterVersion=3),
    )

    assert response.status_code == 400
    assert "Unrecognized update center version" in response.json()["detail"]


def test_post_back_for_unknown_site_is_not_found(client: TestClient) -> None:
    response = client.post("/updateCenter/byId/nope/postBack", json=feed_document({}))

    assert response.status_code == 404


def test_install_with_nothing_missing_records_completion(client: TestClient, service: ProvisioningService) -> None:
    response = client.post("/provisioning/install", params={"mode": "full"})

    assert response.status_code == 200
    assert response.json() == {"ok": True, "mode": "full", "worker_started": False, "pending": []}
    assert service.is_everything_installed() is True


def test_install_with_unknown_mode_is_rejected(client: TestClient) -> None:
    response = client.post("/provisioning/install", params={"mode": "bogus"})

    assert response.status_code == 400
    assert "Unknown install mode" in response.json()["detail"]

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_project_root_on_path() -> None:
    """Guarantee the repository root is discoverable for absolute imports."""

    root = Path(__file__).resolve().parent.parent
    root_str = str(root)
    if root_str not in sys.path:
        sys.path.insert(0, root_str)

    tests_dir = root / "tests"
    tests_str = str(tests_dir)
    if tests_str not in sys.path:
        sys.path.insert(1, tests_str)


_ensure_project_root_on_path()


@pytest.fixture(autouse=True)
def _state_path_env(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory):
    """Isolate provisioning state writes so tests never touch real user data."""

    state_dir = tmp_path_factory.mktemp("provisioner_state")
    state_path = state_dir / "state.json"
    monkeypatch.setenv("PROVISIONER_STATE_PATH", str(state_path))
    monkeypatch.setenv("PROVISIONER_LOG_DIR", str(state_dir / "logs"))
    monkeypatch.delenv("PROVISIONER_LOG_FILE", raising=False)
    monkeypatch.delenv("PROVISIONER_CONFIG_PATH", raising=False)

    yield

    if state_path.exists():
        try:
            state_path.unlink()
        except OSError:
            pass

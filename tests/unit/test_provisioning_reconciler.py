from __future__ import annotations

from pathlib import Path

import pytest

from domain.plugins import InstallMode
from services.provisioning.pending import PendingQueue
from services.provisioning.reconciler import Reconciler
from services.provisioning.status import Notice, StatusBoard
from tests.unit.provisioning_test_utils import FakePlugin, FakePluginManager, make_state


class RecordingWorker:
    def __init__(self) -> None:
        self.started = False
        self.alive = True

    def start(self) -> None:
        self.started = True

    def is_alive(self) -> bool:
        return self.started and self.alive


class Harness:
    def __init__(self, tmp_path: Path, *plugins: FakePlugin) -> None:
        self.manager = FakePluginManager(*plugins)
        self.queue = PendingQueue()
        self.state = make_state(tmp_path)
        self.status = StatusBoard()
        self.workers: list[RecordingWorker] = []
        self.reconciler = Reconciler(self.manager, self.queue, self.state, self.status, self._new_worker)

    def _new_worker(self) -> RecordingWorker:
        worker = RecordingWorker()
        self.workers.append(worker)
        return worker

    def queued(self) -> list[str]:
        return [dependency.name for dependency in self.queue.snapshot()]


def _all_present(mode: InstallMode) -> list[FakePlugin]:
    return [FakePlugin(dependency.name, dependency.min_version or "1.0") for dependency in mode.dependencies]


def test_missing_required_plugins_are_queued_in_manifest_order(tmp_path: Path) -> None:
    harness = Harness(tmp_path)

    worker = harness.reconciler.reconcile(InstallMode.MINIMAL)

    assert harness.queued() == list(InstallMode.MINIMAL.names())
    assert worker is harness.workers[0]
    assert worker.started
    assert harness.status.get().notice is Notice.DOWNLOAD_METADATA


def test_optional_plugins_are_not_installed_when_absent(tmp_path: Path) -> None:
    harness = Harness(tmp_path)

    harness.reconciler.reconcile(InstallMode.OPERATIONS_CENTER)

    assert "free-license" not in harness.queued()


def test_outdated_and_unversioned_plugins_are_queued(tmp_path: Path) -> None:
    plugins = _all_present(InstallMode.MINIMAL)
    plugins[2] = FakePlugin("credentials", "1.3")
    plugins[3] = FakePlugin("cloudbees-folder", None)
    harness = Harness(tmp_path, *plugins)

    harness.reconciler.reconcile(InstallMode.MINIMAL)

    assert harness.queued() == ["credentials", "cloudbees-folder"]


def test_build_annotations_are_ignored_when_comparing(tmp_path: Path) -> None:
    plugins = _all_present(InstallMode.MINIMAL)
    plugins[2] = FakePlugin("credentials", "1.4 (private-abc)")
    harness = Harness(tmp_path, *plugins)

    harness.reconciler.reconcile(InstallMode.MINIMAL)

    assert harness.queued() == []


def test_nothing_to_do_marks_the_agent_version_installed(tmp_path: Path) -> None:
    harness = Harness(tmp_path, *_all_present(InstallMode.MINIMAL))

    worker = harness.reconciler.reconcile(InstallMode.MINIMAL)

    assert worker is None
    assert harness.workers == []
    assert harness.state.installed_version == "1.0.0"
    assert (tmp_path / "state.json").is_file()


def test_mandatory_disabled_plugin_is_enabled_and_still_upgraded(tmp_path: Path) -> None:
    plugins = _all_present(InstallMode.MINIMAL)
    plugins[0] = FakePlugin("cloudbees-license", "3.0", enabled=False)
    harness = Harness(tmp_path, *plugins)

    harness.reconciler.reconcile(InstallMode.MINIMAL)

    assert harness.queued() == ["cloudbees-license"]
    assert plugins[0].enabled is True


def test_enable_failures_are_logged_not_raised(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    plugins = _all_present(InstallMode.MINIMAL)
    plugins[1] = FakePlugin("cloudbees-support", "1.0", enabled=False, enable_error=OSError("read-only"))
    harness = Harness(tmp_path, *plugins)

    with caplog.at_level("WARNING"):
        harness.reconciler.reconcile(InstallMode.MINIMAL)

    assert plugins[1].enable_calls == 1
    assert "Could not enable cloudbees-support" in caplog.text


def test_non_mandatory_disabled_plugin_is_left_alone(tmp_path: Path) -> None:
    plugins = _all_present(InstallMode.MINIMAL)
    plugins[2] = FakePlugin("credentials", "1.4", enabled=False)
    harness = Harness(tmp_path, *plugins)

    harness.reconciler.reconcile(InstallMode.MINIMAL)

    assert plugins[2].enable_calls == 0


def test_previously_installed_version_short_circuits(tmp_path: Path) -> None:
    (tmp_path / "state.json").write_text('{"installed_version": "1.0.0", "modes": ["minimal"]}', encoding="utf-8")
    license_plugin = FakePlugin("cloudbees-license", "4.0", enabled=False)
    harness = Harness(tmp_path, license_plugin)
    harness.state.load()

    worker = harness.reconciler.reconcile(InstallMode.MINIMAL)

    assert worker is None
    assert harness.queued() == []
    assert license_plugin.enabled is True


def test_newer_agent_version_reconciles_again(tmp_path: Path) -> None:
    (tmp_path / "state.json").write_text('{"installed_version": "0.9.0"}', encoding="utf-8")
    harness = Harness(tmp_path)
    harness.state.load()

    harness.reconciler.reconcile(InstallMode.MINIMAL)

    assert harness.queued() == list(InstallMode.MINIMAL.names())


def test_only_one_worker_runs_and_repeated_calls_do_not_duplicate(tmp_path: Path) -> None:
    harness = Harness(tmp_path)

    first = harness.reconciler.reconcile(InstallMode.MINIMAL)
    second = harness.reconciler.reconcile(InstallMode.MINIMAL)

    assert first is not None
    assert second is None
    assert len(harness.workers) == 1
    assert harness.queued() == list(InstallMode.MINIMAL.names())


def test_dead_worker_is_replaced(tmp_path: Path) -> None:
    harness = Harness(tmp_path)
    first = harness.reconciler.reconcile(InstallMode.MINIMAL)
    first.alive = False

    second = harness.reconciler.reconcile(InstallMode.MINIMAL)

    assert second is not None and second is not first
    assert harness.queue.worker is second


def test_version_confirmed_for_another_mode_still_reconciles(tmp_path: Path) -> None:
    (tmp_path / "state.json").write_text('{"installed_version": "1.0.0", "modes": ["full"]}', encoding="utf-8")
    harness = Harness(tmp_path, *_all_present(InstallMode.MINIMAL))
    harness.state.load()

    assert harness.reconciler.reconcile(InstallMode.MINIMAL) is None

    assert harness.state.confirmed_modes == frozenset({"full", "minimal"})
    assert harness.state.is_installed("minimal") is True

from __future__ import annotations

from importlib import resources

from app.version import get_agent_version


def _reset_cache() -> None:
    get_agent_version.cache_clear()  # type: ignore[attr-defined]


def test_get_agent_version_prefers_environment(monkeypatch) -> None:
    monkeypatch.setenv("PROVISIONER_AGENT_VERSION", "v1.2.3")
    _reset_cache()

    assert get_agent_version() == "1.2.3"
    _reset_cache()


def test_get_agent_version_strips_build_annotations(monkeypatch) -> None:
    monkeypatch.setenv("PROVISIONER_AGENT_VERSION", "4.2 (private-0f3a)")
    _reset_cache()

    assert get_agent_version() == "4.2"
    _reset_cache()


def test_get_agent_version_falls_back_to_version_file(monkeypatch) -> None:
    monkeypatch.delenv("PROVISIONER_AGENT_VERSION", raising=False)
    _reset_cache()

    version_file = resources.files("app").joinpath("VERSION")
    expected = version_file.read_text(encoding="utf-8").strip()
    assert expected
    assert get_agent_version() == expected
    _reset_cache()

import json

import pytest

from app.config import (
    FeedConfig,
    ProvisionerConfig,
    get_provisioner_config,
    load_provisioner_config,
    reset_provisioner_config_cache,
)


def test_default_config_describes_the_trusted_feed() -> None:
    reset_provisioner_config_cache()
    config = load_provisioner_config()
    assert isinstance(config, ProvisionerConfig)
    assert isinstance(config.feed, FeedConfig)
    assert config.feed.trusted_id == "jenkins-enterprise"
    assert config.feed.trusted_url == "http://jenkins-updates.cloudbees.com/update-center.json"
    assert "ichci" in config.feed.matching_ids
    assert "jenkins-enterprise" in config.feed.matching_ids
    assert len(config.feed.legacy_urls) == 3
    assert config.feed.trusted_url in config.feed.matching_urls
    assert config.feed.delegate_plugin == "nectar-license"


def test_default_config_includes_installer_cadence() -> None:
    config = load_provisioner_config()
    assert config.installer.tick_seconds == pytest.approx(5.0)
    assert config.installer.missing_warning_interval_seconds == pytest.approx(3600.0)
    assert config.installer.failure_warning_interval_seconds == pytest.approx(60.0)
    assert config.trust.pinned_root_resource == "root-cacert.pem"


def test_custom_config_overrides_values(tmp_path) -> None:
    config_path = tmp_path / "provisioner.json"
    config_path.write_text(
        json.dumps(
            {
                "feed": {
                    "trusted_id": "internal",
                    "trusted_url": "https://mirror.example.com/uc.json",
                    "legacy_ids": ["old", "", 7],
                    "due_interval_seconds": "3600",
                    "delegate_plugin": "",
                },
                "installer": {"tick_seconds": 0.5, "restart_grace_seconds": -1},
            }
        ),
        encoding="utf-8",
    )

    config = load_provisioner_config(config_path)

    assert config.feed.trusted_id == "internal"
    assert config.feed.legacy_ids == frozenset({"old"})
    assert config.feed.due_interval_seconds == 3600
    assert config.feed.delegate_plugin is None
    assert config.installer.tick_seconds == pytest.approx(0.5)
    assert config.installer.restart_grace_seconds == pytest.approx(5.0)


def test_invalid_config_falls_back_to_defaults(tmp_path) -> None:
    config_path = tmp_path / "provisioner.json"
    config_path.write_text("[1, 2, 3]", encoding="utf-8")

    config = load_provisioner_config(config_path)

    assert config.feed.trusted_id == "jenkins-enterprise"
    assert config.feed.retry_backoff_seconds == 15


def test_missing_config_file_falls_back_to_defaults(tmp_path) -> None:
    config = load_provisioner_config(tmp_path / "absent.json")

    assert config.installer.quiet_down_poll_seconds == pytest.approx(1.0)


def test_environment_path_is_used_by_cached_loader(tmp_path, monkeypatch) -> None:
    config_path = tmp_path / "provisioner.json"
    config_path.write_text(json.dumps({"feed": {"trusted_id": "from-env"}}), encoding="utf-8")
    monkeypatch.setenv("PROVISIONER_CONFIG_PATH", str(config_path))
    reset_provisioner_config_cache()
    try:
        first = get_provisioner_config()
        assert first.feed.trusted_id == "from-env"
        assert get_provisioner_config() is first
    finally:
        reset_provisioner_config_cache()

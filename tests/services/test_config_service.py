"""Tests for ConfigService."""

import json
import stat

import pytest

from taskmate.errors import ValidationError
from taskmate.services.config_service import ConfigService


def test_defaults_on_first_run(tmp_config):
    config = tmp_config.config
    assert config.store.url == ""
    assert config.store.table == "tasks"
    assert config.realtime.enabled is True
    assert not config.store.is_configured


def test_set_persists_and_reloads(tmp_config):
    tmp_config.set("store.url", "https://store.test/")
    tmp_config.set("store.key", "secret")

    reloaded = ConfigService(tmp_config.config_dir)
    assert reloaded.get("store.url") == "https://store.test"
    assert reloaded.config.store.is_configured


def test_config_file_is_private(tmp_config):
    tmp_config.set("store.key", "secret")
    mode = stat.S_IMODE(tmp_config.config_path.stat().st_mode)
    assert mode == 0o600
    assert json.loads(tmp_config.config_path.read_text())["store"]["key"] == "secret"


def test_set_unknown_key(tmp_config):
    with pytest.raises(ValidationError, match="Unknown configuration key"):
        tmp_config.set("store.password", "x")
    with pytest.raises(ValidationError, match="Unknown configuration key"):
        tmp_config.set("nothing.here", "x")


def test_set_invalid_value(tmp_config):
    with pytest.raises(ValidationError, match="realtime.poll_interval"):
        tmp_config.set("realtime.poll_interval", 0)


def test_reset_single_key(tmp_config):
    tmp_config.set("store.table", "todos")
    tmp_config.reset("store.table")
    assert tmp_config.get("store.table") == "tasks"


def test_reset_everything(tmp_config):
    tmp_config.set("store.url", "https://store.test")
    tmp_config.reset()
    assert tmp_config.get("store.url") == ""


def test_environment_overrides(tmp_config, monkeypatch):
    tmp_config.set("store.url", "https://file.test")
    monkeypatch.setenv("SUPABASE_URL", "https://fallback.test")
    monkeypatch.setenv("TASKMATE_KEY", "env-key")

    effective = tmp_config.effective_config()

    assert effective.store.url == "https://fallback.test"
    assert effective.store.key == "env-key"
    # The stored configuration is left alone
    assert tmp_config.get("store.url") == "https://file.test"


def test_taskmate_env_wins_over_fallback(tmp_config, monkeypatch):
    monkeypatch.setenv("TASKMATE_URL", "https://primary.test/")
    monkeypatch.setenv("SUPABASE_URL", "https://fallback.test")
    assert tmp_config.effective_config().store.url == "https://primary.test"


def test_get_from_config_missing_key(tmp_config):
    assert tmp_config.get("store.missing") is None

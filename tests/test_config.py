"""Unit tests for opsreport.engine.config — YAML loading, env overrides, validation."""

import pytest
import yaml

from opsreport.engine.config import (
    CONFIG_FILENAME,
    STARTER_CONFIG,
    NotificationConfig,
    PlatformConfig,
    get_config,
    load_config,
    missing_notification_settings,
    reset_config,
)
from opsreport.engine.errors import ConfigError


def _write(tmp_path, text):
    path = tmp_path / CONFIG_FILENAME
    path.write_text(text, encoding="utf-8")
    return str(path)


class TestDefaults:
    def test_platform_defaults(self):
        cfg = PlatformConfig()
        assert cfg.environment == "dev"
        assert cfg.store.backend == "sql"
        assert cfg.store.table == "reports"
        assert cfg.auth.backend == "local"
        assert cfg.auth.users == {}
        assert cfg.notifications.enabled is True
        assert cfg.notifications.is_configured is False
        assert cfg.logging.level == "INFO"
        assert cfg.ui.title == "Operations Dashboard"

    def test_missing_file_gives_defaults(self, tmp_path):
        cfg = load_config(str(tmp_path / "nope.yaml"), environ={})
        assert cfg == PlatformConfig()


class TestLoadConfig:
    def test_loads_yaml(self, tmp_path):
        path = _write(tmp_path, (
            "name: Field Ops\n"
            "environment: prod\n"
            "store:\n"
            "  backend: rest\n"
            "  url: https://abc.example.co\n"
            "  api_key: anon-key\n"
            "auth:\n"
            "  backend: gotrue\n"
            "  url: https://abc.example.co\n"
        ))
        cfg = load_config(path, environ={})
        assert cfg.name == "Field Ops"
        assert cfg.environment == "prod"
        assert cfg.store.backend == "rest"
        assert cfg.store.api_key == "anon-key"
        assert cfg.auth.backend == "gotrue"

    def test_env_overrides_win(self, tmp_path):
        path = _write(tmp_path, "notifications:\n  bot_token: from-file\n")
        cfg = load_config(path, environ={
            "OPSREPORT_TELEGRAM_BOT_TOKEN": "from-env",
            "OPSREPORT_TELEGRAM_CHAT_ID": "-100123",
            "OPSREPORT_STORE_API_KEY": "k",
            "OPSREPORT_ENV": "staging",
        })
        assert cfg.notifications.bot_token == "from-env"
        assert cfg.notifications.chat_id == "-100123"
        assert cfg.notifications.is_configured is True
        assert cfg.store.api_key == "k"
        assert cfg.environment == "staging"

    def test_blank_env_values_ignored(self, tmp_path):
        path = _write(tmp_path, "store:\n  api_key: file-key\n")
        cfg = load_config(path, environ={"OPSREPORT_STORE_API_KEY": ""})
        assert cfg.store.api_key == "file-key"

    def test_invalid_yaml(self, tmp_path):
        path = _write(tmp_path, "store: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path, environ={})

    def test_non_mapping(self, tmp_path):
        path = _write(tmp_path, "- just\n- a list\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path, environ={})

    def test_bad_backend_rejected(self, tmp_path):
        path = _write(tmp_path, "store:\n  backend: mongo\n")
        with pytest.raises(ConfigError) as exc_info:
            load_config(path, environ={})
        assert exc_info.value.errors

    def test_bad_environment_rejected(self, tmp_path):
        path = _write(tmp_path, "environment: qa\n")
        with pytest.raises(ConfigError):
            load_config(path, environ={})

    def test_log_level_normalised(self, tmp_path):
        path = _write(tmp_path, "logging:\n  level: debug\n")
        assert load_config(path, environ={}).logging.level == "DEBUG"


class TestSingleton:
    def test_get_config_discovers_from_cwd(self, tmp_path, monkeypatch):
        _write(tmp_path, "name: Discovered\n")
        monkeypatch.chdir(tmp_path)
        assert get_config().name == "Discovered"
        assert get_config() is get_config()

    def test_reset_config(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        first = get_config()
        reset_config()
        assert get_config() is not first


class TestNotificationSettings:
    def test_missing_both(self):
        assert missing_notification_settings(NotificationConfig()) == ["bot_token", "chat_id"]

    def test_missing_chat_id(self):
        cfg = NotificationConfig(bot_token="t")
        assert missing_notification_settings(cfg) == ["chat_id"]

    def test_complete(self):
        cfg = NotificationConfig(bot_token="t", chat_id="c")
        assert missing_notification_settings(cfg) == []


def test_starter_config_is_valid(tmp_path):
    assert isinstance(yaml.safe_load(STARTER_CONFIG), dict)
    cfg = load_config(_write(tmp_path, STARTER_CONFIG), environ={})
    assert cfg.store.backend == "sql"
    assert cfg.auth.backend == "local"

"""
OpsReport Configuration — Load and validate opsreport.yaml at startup.

Secrets (store key, bot token, chat id) may be supplied through environment
variables instead of the YAML file; environment values win.

Usage:
    from opsreport.engine.config import load_config, get_config
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from opsreport.engine.errors import ConfigError

CONFIG_FILENAME = "opsreport.yaml"

# env var -> (section, key)
ENV_OVERRIDES = {
    "OPSREPORT_STORE_URL": ("store", "url"),
    "OPSREPORT_STORE_API_KEY": ("store", "api_key"),
    "OPSREPORT_DATABASE_URL": ("store", "database_url"),
    "OPSREPORT_AUTH_URL": ("auth", "url"),
    "OPSREPORT_AUTH_API_KEY": ("auth", "api_key"),
    "OPSREPORT_TELEGRAM_BOT_TOKEN": ("notifications", "bot_token"),
    "OPSREPORT_TELEGRAM_CHAT_ID": ("notifications", "chat_id"),
}


# ---------------------------------------------------------------------------
# Pydantic models for opsreport.yaml
# ---------------------------------------------------------------------------

class StoreConfig(BaseModel):
    backend: str = "sql"
    url: str = ""
    api_key: str = ""
    table: str = "reports"
    timeout: int = 15
    database_url: str = "sqlite:///opsreport.db"

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        if v not in ("rest", "sql"):
            raise ValueError(f"store.backend must be rest/sql, got '{v}'")
        return v


class AuthConfig(BaseModel):
    backend: str = "local"
    url: str = ""
    api_key: str = ""
    timeout: int = 15
    # email -> bcrypt hash, used by the local backend only
    users: Dict[str, str] = Field(default_factory=dict)

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        if v not in ("gotrue", "local"):
            raise ValueError(f"auth.backend must be gotrue/local, got '{v}'")
        return v


class NotificationConfig(BaseModel):
    enabled: bool = True
    bot_token: str = ""
    chat_id: str = ""
    api_base: str = "https://api.telegram.org"
    timeout: int = 10
    parse_mode: str = "Markdown"

    @property
    def is_configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)


class LogRetentionConfig(BaseModel):
    activity_days: int = 90
    error_days: int = 365


class LogAsyncQueueConfig(BaseModel):
    flush_interval_ms: int = 100
    flush_batch_size: int = 50
    max_queue_size: int = 10000


class LoggingConfig(BaseModel):
    level: str = "INFO"
    directory: str = ".opsreport/logs"
    compress_after_days: int = 7
    retention: LogRetentionConfig = LogRetentionConfig()
    async_queue: LogAsyncQueueConfig = LogAsyncQueueConfig()

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"logging.level must be a standard level name, got '{v}'")
        return v


class UIConfig(BaseModel):
    title: str = "Operations Dashboard"
    confirm_delete_message: str = "Delete this report?"


class PlatformConfig(BaseModel):
    """Root model for opsreport.yaml."""
    name: str = "OpsReport"
    environment: str = "dev"

    store: StoreConfig = StoreConfig()
    auth: AuthConfig = AuthConfig()
    notifications: NotificationConfig = NotificationConfig()
    logging: LoggingConfig = LoggingConfig()
    ui: UIConfig = UIConfig()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        if v not in ("dev", "staging", "prod"):
            raise ValueError(f"environment must be dev/staging/prod, got '{v}'")
        return v


# ---------------------------------------------------------------------------
# Config Loading Functions
# ---------------------------------------------------------------------------

_config: Optional[PlatformConfig] = None


def _find_project_root() -> Path:
    """Find the project root by looking for opsreport.yaml."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        if (parent / CONFIG_FILENAME).exists():
            return parent
    return current


def get_project_root() -> Path:
    """Return the project root directory."""
    return _find_project_root()


def _apply_env_overrides(data: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    environ = os.environ if environ is None else environ
    for var, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value:
            data.setdefault(section, {})
            data[section][key] = value
    if environ.get("OPSREPORT_ENV"):
        data["environment"] = environ["OPSREPORT_ENV"]
    return data


def load_config(
    config_path: Optional[str] = None,
    environ: Optional[Dict[str, str]] = None,
) -> PlatformConfig:
    """
    Load and validate opsreport.yaml.

    Args:
        config_path: Explicit path to opsreport.yaml. If None, auto-discovers.
        environ: Environment mapping for overrides (defaults to os.environ).

    Returns:
        Validated PlatformConfig instance.

    Raises:
        ConfigError: if the file is not valid YAML or fails validation.
    """
    global _config

    if config_path is None:
        config_path = str(_find_project_root() / CONFIG_FILENAME)

    raw: Dict[str, Any] = {}
    path = Path(config_path)
    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}", path=str(path))
        if not isinstance(raw, dict):
            raise ConfigError(f"{path} must contain a mapping at the top level", path=str(path))

    raw = _apply_env_overrides(raw, environ)

    try:
        _config = PlatformConfig(**raw)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid configuration in {path}: {e.error_count()} error(s)",
            path=str(path),
            errors=e.errors(),
        )
    return _config


def get_config() -> PlatformConfig:
    """Get the currently loaded config, loading if necessary."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget the cached config (tests, reloads)."""
    global _config
    _config = None


def missing_notification_settings(config: NotificationConfig) -> List[str]:
    """Names of the notification settings that are still blank."""
    missing = []
    if not config.bot_token:
        missing.append("bot_token")
    if not config.chat_id:
        missing.append("chat_id")
    return missing


STARTER_CONFIG = """\
name: OpsReport
environment: dev

store:
  backend: sql                 # sql | rest
  database_url: sqlite:///opsreport.db
  # url: https://<project>.supabase.co
  # api_key: set OPSREPORT_STORE_API_KEY instead
  table: reports

auth:
  backend: local               # local | gotrue
  users: {}
  # users:
  #   ops@example.com: <output of `opsreport hash-password`>

notifications:
  enabled: true
  # bot_token / chat_id: set OPSREPORT_TELEGRAM_BOT_TOKEN / OPSREPORT_TELEGRAM_CHAT_ID

logging:
  level: INFO
  directory: .opsreport/logs
"""

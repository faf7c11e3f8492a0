"""Configuration service for TaskMate.

Loads and saves ``config.json`` in the platform config directory and
resolves the effective store settings, where environment variables take
precedence over the file.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from taskmate.errors import ValidationError
from taskmate.models.config_models import AppConfig

APP_NAME = "taskmate"

# First variable that is set wins
URL_ENV_VARS = ("TASKMATE_URL", "SUPABASE_URL")
KEY_ENV_VARS = ("TASKMATE_KEY", "SUPABASE_KEY")


def _first_env(names: tuple[str, ...]) -> str | None:
    for name in names:
        value = os.environ.get(name)
        if value:
            return value
    return None


class ConfigService:
    """Service for managing application configuration."""

    def __init__(self, config_dir: Path | None = None):
        self.config_dir = Path(config_dir or user_config_dir(APP_NAME))
        self.config_path = self.config_dir / "config.json"
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self._config: AppConfig | None = None

    @property
    def config(self) -> AppConfig:
        """Get or load the configuration stored on disk."""
        if self._config is None:
            self._config = self.load_config()
        return self._config

    def load_config(self) -> AppConfig:
        """Load configuration from storage."""
        try:
            with open(self.config_path, encoding="utf-8") as f:
                return AppConfig.model_validate_json(f.read())
        except FileNotFoundError:
            # First run
            return AppConfig()
        except Exception as e:
            raise RuntimeError(f"Failed to load config: {e}") from e

    def save_config(self) -> None:
        """Save the current configuration to storage."""
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w", encoding="utf-8") as f:
                f.write(self.config.model_dump_json(indent=4))
            # The file may hold the API key
            self.config_path.chmod(0o600)
        except Exception as e:
            raise RuntimeError(f"Failed to save config: {e}") from e

    def effective_config(self) -> AppConfig:
        """Return the configuration with environment overrides applied."""
        config = self.config.model_copy(deep=True)
        url = _first_env(URL_ENV_VARS)
        key = _first_env(KEY_ENV_VARS)
        if url:
            config.store.url = url.strip().rstrip("/")
        if key:
            config.store.key = key
        return config

    def get(self, key: str) -> Any:
        """Get a configuration value by dot-separated key."""
        return self.get_from_config(self.config, key)

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value by dot-separated key.

        Raises:
            ValidationError: If the key is unknown or the value is rejected
        """
        keys = key.split(".")
        config_dict = self.config.model_dump()

        current = config_dict
        for k in keys[:-1]:
            if not isinstance(current.get(k), dict):
                raise ValidationError(f"Unknown configuration key '{key}'")
            current = current[k]
        if keys[-1] not in current:
            raise ValidationError(f"Unknown configuration key '{key}'")
        current[keys[-1]] = value

        try:
            self._config = AppConfig(**config_dict)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid value for '{key}': {e}") from e
        self.save_config()

    def reset(self, key: str | None = None) -> None:
        """Reset configuration, or a single key, to defaults."""
        if key is None:
            self._config = AppConfig()
            self.save_config()
            return
        default_value = self.get_from_config(AppConfig(), key)
        if default_value is None:
            raise ValidationError(f"Unknown configuration key '{key}'")
        if isinstance(default_value, BaseModel):
            default_value = default_value.model_dump()
        self.set(key, default_value)

    @staticmethod
    def get_from_config(config: AppConfig, key: str) -> Any:
        """Get value from a config object using dot notation."""
        value: Any = config
        for k in key.split("."):
            if isinstance(value, BaseModel):
                value = getattr(value, k, None)
            elif isinstance(value, dict):
                value = value.get(k)
            else:
                return None
        return value


@lru_cache(maxsize=1)
def get_config_service() -> ConfigService:
    """Get the process-wide ConfigService."""
    return ConfigService()


def resolve_output_format(requested: str | None) -> str:
    """Return ``--output`` when given, else the configured ``output.format``."""
    if requested:
        return requested
    return get_config_service().effective_config().output.format

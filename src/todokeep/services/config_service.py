"""Configuration service for managing todokeep configuration.

This module provides the ConfigService class, which is the single source of truth
for all configuration management in todokeep. It handles:

- Loading and saving config.json
- Dot-key get/set/reset of individual settings
- Resolving the store file from CLI flag, environment and defaults
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir, user_data_dir
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from todokeep.models.config_models import AppConfig
from todokeep.models.exceptions import ValidationError

APP_NAME = "todokeep"
STORE_FILENAME = "todos.json"
STORE_ENV_VAR = "TODOKEEP_FILE"


class ConfigService:
    """Service for managing application configuration.

    This service provides methods to load, save, and manipulate the application's
    configuration settings, stored as JSON in the user config directory.
    """

    def __init__(self):
        """Initialize the config service."""

        self.config_dir = Path(user_config_dir(APP_NAME))
        self.config_path = self.config_dir / "config.json"
        self.data_dir = Path(user_data_dir(APP_NAME))

        # Ensure directories exist
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.data_dir.mkdir(parents=True, exist_ok=True)

        self._config: AppConfig | None = None

    @property
    def config(self) -> AppConfig:
        """Get or load the current configuration."""
        if self._config is None:
            self._config = self.load_config()
        return self._config

    def load_config(self) -> AppConfig:
        """Load configuration from storage."""
        if self._config is not None:
            return self._config  # Return cached config if already loaded

        try:
            with open(self.config_path, encoding="utf-8") as f:
                self._config = AppConfig.model_validate_json(f.read())
        except FileNotFoundError:
            # Config file doesn't exist yet - this is expected on first run
            self._config = AppConfig()
            self.save_config()
        except Exception as e:
            raise RuntimeError(f"Failed to load config: {e}") from e

        return self._config

    def save_config(self):
        """Save the current configuration to storage."""
        if self._config is None:
            raise RuntimeError("No configuration to save")

        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w", encoding="utf-8") as f:
                f.write(self._config.model_dump_json(indent=4))

            # Set file permissions
            self.config_path.chmod(0o600)
        except Exception as e:
            raise RuntimeError(f"Failed to save config: {e}") from e

    def reset_config(self):
        """Reset configuration to defaults."""
        self._config = AppConfig()
        self.save_config()

    def get(self, key: str) -> Any:
        """Get a configuration value by dot-separated key.

        Raises:
            ValidationError: If the key does not exist
        """
        return _lookup(self.config, key)

    def set(self, key: str, value: Any) -> Any:
        """Set a configuration value by dot-separated key.

        The value is validated through the config models before saving.

        Returns:
            The stored (validated) value

        Raises:
            ValidationError: If the key does not exist or the value is invalid
        """
        _lookup(self.config, key)
        keys = key.split(".")
        config_dict = self.config.model_dump()

        current = config_dict
        for k in keys[:-1]:
            current = current[k]
        current[keys[-1]] = value

        try:
            self._config = AppConfig.model_validate(config_dict)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid value for {key}: {e.errors()[0]['msg']}") from e
        self.save_config()
        return self.get(key)

    def reset(self, key: str | None = None) -> None:
        """Reset one key (or everything) to its default."""
        if key is None:
            self.reset_config()
            return
        self.set(key, _lookup(AppConfig(), key))

    def default_store_path(self) -> Path:
        return self.data_dir / STORE_FILENAME

    def resolve_store_path(self, override: str | Path | None = None) -> Path:
        """Pick the store file: explicit override, then $TODOKEEP_FILE, then config, then default."""
        if override:
            return Path(override).expanduser()
        env_path = os.environ.get(STORE_ENV_VAR)
        if env_path:
            return Path(env_path).expanduser()
        if self.config.storage.path:
            return Path(self.config.storage.path).expanduser()
        return self.default_store_path()


def _lookup(config: BaseModel, key: str) -> Any:
    value: Any = config
    for k in key.split("."):
        if not isinstance(value, BaseModel) or k not in type(value).model_fields:
            raise ValidationError(f"Unknown config key: {key}")
        value = getattr(value, k)
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value


@lru_cache(maxsize=1)
def get_config_service() -> ConfigService:
    """Get a cached ConfigService instance."""
    config_service = ConfigService()
    config_service.load_config()
    return config_service

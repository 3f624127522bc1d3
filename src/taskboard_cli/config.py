"""Configuration management for Taskboard CLI."""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Optional

from platformdirs import user_config_dir, user_data_dir
from pydantic import BaseModel, Field, ValidationError


class StorageConfig(BaseModel):
    """Storage configuration."""

    backend: Literal["sqlite", "json", "memory"] = Field(default="sqlite")
    path: Optional[str] = Field(default=None)


class RulesConfig(BaseModel):
    """Business rule configuration."""

    max_tasks: int = Field(default=1000, ge=1)


class OutputConfig(BaseModel):
    """Output configuration."""

    format: str = Field(default="table")
    color: bool = Field(default=True)
    page_size: int = Field(default=20, ge=1)
    sort: str = Field(default="created-desc")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO")


class Config(BaseModel):
    """Main configuration."""

    storage: StorageConfig = Field(default_factory=StorageConfig)
    rules: RulesConfig = Field(default_factory=RulesConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class ConfigManager:
    """Manages Taskboard CLI configuration."""

    def __init__(self, profile: str = "default"):
        self.profile = profile
        self.config_dir = Path(user_config_dir("taskboard-cli"))
        self.data_dir = Path(user_data_dir("taskboard-cli"))
        self.config_file = self.config_dir / f"{profile}.json"

        # Ensure directories exist
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.data_dir.mkdir(parents=True, exist_ok=True)

        self._config: Optional[Config] = None

    @property
    def config(self) -> Config:
        """Get the current configuration."""
        if self._config is None:
            self._config = self.load_config()
        return self._config

    def load_config(self) -> Config:
        """Load configuration from file, falling back to defaults if it is corrupt."""
        if self.config_file.exists():
            try:
                with open(self.config_file, "r") as f:
                    data = json.load(f)
                return Config(**data)
            except (OSError, json.JSONDecodeError, ValidationError, TypeError):
                return Config()
        return Config()

    def save_config(self, config: Optional[Config] = None) -> None:
        """Save configuration to file."""
        if config is None:
            config = self.config

        with open(self.config_file, "w") as f:
            json.dump(config.model_dump(), f, indent=2)

    def get(self, key: str) -> Any:
        """Get a configuration value by dot-separated key."""
        return self.get_from_config(self.config, key)

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value by dot-separated key.

        Raises:
            KeyError: If the key does not name a configuration field
            ValidationError: If the value has the wrong type
        """
        keys = key.split(".")
        config_dict = self.config.model_dump()

        current = config_dict
        for k in keys[:-1]:
            if not isinstance(current.get(k), dict):
                raise KeyError(key)
            current = current[k]
        if keys[-1] not in current:
            raise KeyError(key)

        current[keys[-1]] = value

        # Reload config from the modified dictionary
        self._config = Config(**config_dict)
        self.save_config()

    def reset(self, key: Optional[str] = None) -> None:
        """Reset configuration to defaults."""
        if key is None:
            self._config = Config()
        else:
            default_value = self.get_from_config(Config(), key)
            if default_value is not None:
                self.set(key, default_value)
        self.save_config()

    def get_from_config(self, config: Config, key: str) -> Any:
        """Get value from a config object using dot notation."""
        keys = key.split(".")
        value: Any = config
        for k in keys:
            if isinstance(value, BaseModel):
                value = getattr(value, k, None)
            else:
                return None
        return value

    def storage_path(self) -> Path:
        """Resolve the storage file for the configured backend."""
        storage = self.config.storage
        if storage.path:
            return Path(storage.path).expanduser()
        suffix = "json" if storage.backend == "json" else "db"
        filename = f"{self.profile}.{suffix}"
        return self.data_dir / filename

    def list_profiles(self) -> list[str]:
        """List all available profiles."""
        profiles = []
        for config_file in self.config_dir.glob("*.json"):
            if not config_file.name.startswith("."):
                profiles.append(config_file.stem)
        return profiles


@lru_cache(maxsize=None)
def get_config_manager(profile: str = "default") -> ConfigManager:
    """Get the config manager for a profile (one instance per profile)."""
    return ConfigManager(profile)

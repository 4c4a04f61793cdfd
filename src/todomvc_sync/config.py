"""Configuration management for the TodoMVC client."""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml


logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "todos-vuejs-2.0"

# Environment variables that override values from the config file
ENV_OVERRIDES = {
    "TODOMVC_API_URL": "api_url",
    "TODOMVC_DATA_DIR": "data_dir",
    "TODOMVC_STORAGE_KEY": "storage_key",
}


@dataclass
class ConfigModel:
    """Global configuration model for the TodoMVC client."""

    # Remote GraphQL endpoint; None runs the client offline
    api_url: Optional[str] = None
    request_timeout: float = 30.0

    # Local cache slot
    storage_key: str = DEFAULT_STORAGE_KEY
    data_dir: str = "~/.todomvc"

    # Sync behavior
    reconcile_ids: bool = True  # replace temporary ids with server ids
    sync_bulk_operations: bool = False  # push clear-completed / toggle-all

    log_level: str = "WARNING"

    def __post_init__(self):
        """Post-initialization setup."""
        self.data_dir = os.path.expanduser(self.data_dir)

    def to_yaml(self) -> str:
        """Serialize config to YAML."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        return yaml.dump(data, default_flow_style=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "ConfigModel":
        """Deserialize config from YAML.

        Unknown keys are ignored so older config files keep loading.
        """
        data = yaml.safe_load(yaml_str) or {}
        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping")

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.debug(f"Ignoring unknown config keys: {sorted(unknown)}")
        return cls(**{key: value for key, value in data.items() if key in known})

    def apply_env(self, environ: Optional[dict] = None) -> "ConfigModel":
        """Apply environment variable overrides in place."""
        environ = os.environ if environ is None else environ
        for env_var, attr in ENV_OVERRIDES.items():
            value = environ.get(env_var)
            if value:
                setattr(self, attr, value)
        self.data_dir = os.path.expanduser(self.data_dir)
        return self

    def get_config_path(self) -> Path:
        """Get the config file path."""
        return Path(self.data_dir) / "config.yaml"


class Config:
    """Configuration manager for the TodoMVC client."""

    _instance: Optional[ConfigModel] = None

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> ConfigModel:
        """Load configuration from file or create default."""
        if cls._instance is not None:
            return cls._instance

        config = ConfigModel().apply_env()

        if config_path is None:
            config_path = config.get_config_path()

        if config_path.exists():
            try:
                config = ConfigModel.from_yaml(config_path.read_text())
                logger.debug(f"Loaded configuration from {config_path}")
            except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
                logger.warning(f"Failed to load config from {config_path}: {e}; using defaults")
                config = ConfigModel()
        else:
            cls.save(config, config_path)

        config.apply_env()
        cls._instance = config
        return config

    @classmethod
    def save(cls, config: ConfigModel, config_path: Optional[Path] = None) -> None:
        """Save configuration to file."""
        if config_path is None:
            config_path = config.get_config_path()

        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            config_path.write_text(config.to_yaml())
            logger.debug(f"Configuration saved to {config_path}")
        except OSError as e:
            logger.error(f"Failed to save config to {config_path}: {e}")

    @classmethod
    def get(cls) -> ConfigModel:
        """Get the current configuration instance."""
        if cls._instance is None:
            cls._instance = cls.load()
        return cls._instance

    @classmethod
    def reload(cls, config_path: Optional[Path] = None) -> ConfigModel:
        """Reload configuration from file."""
        cls._instance = None
        return cls.load(config_path)


def get_config() -> ConfigModel:
    """Get the current configuration."""
    return Config.get()


def load_config(config_path: Optional[Path] = None) -> ConfigModel:
    """Load configuration from file."""
    return Config.load(config_path)


def save_config(config: ConfigModel, config_path: Optional[Path] = None) -> None:
    """Save configuration to file."""
    Config.save(config, config_path)

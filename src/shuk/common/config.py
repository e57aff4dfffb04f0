"""Configuration loader with multi-source support."""

import logging
import os
from pathlib import Path
from typing import Dict, Any, Optional, Type, TypeVar

import platformdirs
import toml
from pydantic import BaseModel, ValidationError

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

T = TypeVar('T', bound=BaseModel)

CONFIG_FILE_NAME = "config.toml"


def user_config_dir(app_name: str = "shuk") -> Path:
    """Per-user configuration directory (e.g. ~/.config/shuk on Linux)."""
    return Path(platformdirs.user_config_dir(appname=app_name, appauthor=False))


class ConfigLoader:
    """Loads configuration from multiple sources with priority.

    Priority, lowest first: system file, user file (or an explicit path),
    then ``SHUK_<SECTION>_<KEY>`` environment variables.
    """

    def __init__(self, app_name: str, config_class: Type[T]) -> None:
        self.app_name = app_name
        self.config_class = config_class

    @property
    def user_config_path(self) -> Path:
        return user_config_dir(self.app_name) / CONFIG_FILE_NAME

    def user_config_exists(self) -> bool:
        return self.user_config_path.exists()

    def load(self, config_path: Optional[Path] = None) -> T:
        """Load configuration from all sources.
        
        Args:
            config_path: Optional explicit config file, used instead of the user file
            
        Returns:
            Validated configuration object

        Raises:
            ConfigurationError: If a file cannot be parsed or validation fails
        """
        config_dict: Dict[str, Any] = {}

        system_config = self._load_system_config()
        if system_config:
            config_dict = self._deep_merge(config_dict, system_config)

        if config_path is not None:
            if not config_path.exists():
                raise ConfigurationError(
                    f"Config file not found: {config_path}", path=str(config_path)
                )
            user_config = self._read_toml(config_path)
        else:
            user_config = self._load_user_config()
        if user_config:
            config_dict = self._deep_merge(config_dict, user_config)

        config_dict = self._apply_env_overrides(config_dict)

        try:
            return self.config_class(**config_dict)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid configuration (run `{self.app_name} --init` to create one): {e}",
                path=str(config_path or self.user_config_path),
            ) from e

    def _read_toml(self, path: Path) -> Dict[str, Any]:
        try:
            return toml.load(path)
        except (OSError, toml.TomlDecodeError) as e:
            raise ConfigurationError(f"Could not read config file {path}: {e}", path=str(path)) from e

    def _load_system_config(self) -> Optional[Dict[str, Any]]:
        """Load system-wide configuration."""
        if os.name == "nt":  # Windows
            system_path = (
                Path(os.environ.get("PROGRAMDATA", "C:\\ProgramData"))
                / self.app_name
                / CONFIG_FILE_NAME
            )
        else:  # Linux/Mac
            system_path = Path(f"/etc/{self.app_name}/{CONFIG_FILE_NAME}")

        if system_path.exists():
            return self._read_toml(system_path)

        return None

    def _load_user_config(self) -> Optional[Dict[str, Any]]:
        """Load user-specific configuration."""
        user_config_path = self.user_config_path

        logger.debug(f"Looking for user config: app_name={self.app_name}, path={user_config_path}, exists={user_config_path.exists()}")

        if user_config_path.exists():
            logger.debug(f"Loading user config from {user_config_path}")
            return self._read_toml(user_config_path)

        logger.debug(f"User config not found at {user_config_path}")
        return None

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Override config with environment variables.

        ``SHUK_STORAGE_BUCKET_NAME`` sets ``storage.bucket_name``. Values stay
        strings; the pydantic models coerce them.
        """
        prefix = f"{self.app_name.upper().replace('-', '_')}_"

        for env_key, env_value in os.environ.items():
            if not env_key.startswith(prefix):
                continue

            section, _, key = env_key[len(prefix):].lower().partition("_")
            if not key:
                continue
            if section not in self.config_class.model_fields:
                logger.debug(f"Ignoring {env_key}: unknown section {section!r}")
                continue

            current = config.setdefault(section, {})
            if not isinstance(current, dict):
                continue
            current[key] = env_value

        return config

    def save_user_config(self, config: BaseModel) -> Path:
        """Save user configuration and return the file path."""
        user_config_path = self.user_config_path

        user_config_path.parent.mkdir(parents=True, exist_ok=True)

        config_dict = config.model_dump(exclude_none=True)
        with open(user_config_path, "w") as f:
            toml.dump(config_dict, f)

        return user_config_path

"""
Influx Writer Configuration Loader

Loads configuration from multiple sources with precedence:
1. Environment variables (highest priority)
2. influx_writer.conf file (TOML format)
3. Built-in defaults (lowest priority)

Similar to InfluxDB's configuration approach.
"""

import os
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import toml
from pydantic import ValidationError as PydanticValidationError

from influx_writer.config import ClientConfig
from influx_writer.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "influx_writer.conf"


def _parse_bool(value: str) -> bool:
    return value.lower() == "true"


class WriterSettings:
    """Influx writer configuration manager"""

    # Environment variable -> (section, key[, converter])
    ENV_MAPPINGS = {
        # InfluxDB connection
        "INFLUX_URL": ("influxdb", "url"),
        "INFLUX_DATABASE": ("influxdb", "database"),
        "INFLUX_PRECISION": ("influxdb", "precision"),
        "INFLUX_TIMEOUT": ("influxdb", "timeout", float),

        # Logging
        "LOG_LEVEL": ("logging", "level"),
        "LOG_FORMAT": ("logging", "format"),
        "LOG_INCLUDE_TRACE": ("logging", "include_trace", _parse_bool),
    }

    def __init__(self, config_file: str = None):
        """
        Initialize configuration

        Args:
            config_file: Path to TOML config file (default: ./influx_writer.conf)
        """
        self.config_file = config_file or os.getenv("INFLUX_WRITER_CONFIG", DEFAULT_CONFIG_FILE)
        self.config = {}

        # Load configuration in order of precedence
        self._load_defaults()
        self._load_config_file()
        self._load_env_overrides()

    def _load_defaults(self):
        """Load built-in default configuration"""
        self.config = {
            "influxdb": {
                "url": "http://localhost:8086",
                "database": "",
                "precision": None,
                "timeout": None,
            },
            "logging": {
                "level": "INFO",
                "format": "plain",
                "include_trace": False,
            },
        }

    def _load_config_file(self):
        """Load configuration from the TOML file, if present"""
        config_path = Path(self.config_file)

        if not config_path.exists():
            logger.debug(f"Config file not found: {self.config_file}, using defaults")
            return

        try:
            file_config = toml.load(config_path)
        except (toml.TomlDecodeError, OSError) as e:
            raise ConfigError(f"Failed to load config file {self.config_file}: {e}") from e

        logger.info(f"Loaded configuration from: {self.config_file}")

        # Merge file config into defaults (deep merge)
        self._deep_merge(self.config, file_config)

    def _load_env_overrides(self):
        """Load environment variable overrides"""
        for env_var, mapping in self.ENV_MAPPINGS.items():
            value = os.getenv(env_var)
            if value is None:
                continue

            # Extract path and converter
            *path, converter = mapping if len(mapping) > 2 else (*mapping, None)

            if converter is not None:
                try:
                    value = converter(value)
                except ValueError as e:
                    raise ConfigError(f"Invalid value for {env_var}={value!r}: {e}") from e

            self._set_nested(self.config, path, value)
            logger.debug(f"Environment override: {env_var}={value}")

    def _deep_merge(self, base: Dict, override: Dict):
        """Deep merge override dict into base dict"""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _set_nested(self, config: Dict, path: list, value: Any):
        """Set nested dictionary value"""
        for key in path[:-1]:
            if key not in config:
                config[key] = {}
            config = config[key]
        config[path[-1]] = value

    def get(self, *path, default=None) -> Any:
        """
        Get configuration value by path

        Args:
            *path: Path to config value (e.g., "influxdb", "url")
            default: Default value if not found

        Returns:
            Configuration value or default
        """
        value = self.config
        for key in path:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def set(self, *path_and_value):
        """Override a value, e.g. set("influxdb", "database", "metrics")"""
        *path, value = path_and_value
        self._set_nested(self.config, path, value)

    def get_logging_config(self) -> Dict[str, Any]:
        """Get logging configuration"""
        return self.config.get("logging", {})

    def client_config(self) -> ClientConfig:
        """
        Build the validated client configuration

        Raises:
            ConfigError: influxdb section is missing values or invalid
        """
        try:
            return ClientConfig(**self.config.get("influxdb", {}))
        except PydanticValidationError as e:
            raise ConfigError(f"Invalid [influxdb] configuration: {e}") from e

    def dump(self) -> Dict[str, Any]:
        """Get complete configuration (for debugging)"""
        return self.config.copy()


# Global settings instance
_settings: Optional[WriterSettings] = None


def load_settings(config_file: str = None) -> WriterSettings:
    """
    Load global configuration

    Args:
        config_file: Path to TOML config file

    Returns:
        WriterSettings instance
    """
    global _settings
    _settings = WriterSettings(config_file=config_file)
    return _settings


def get_settings() -> WriterSettings:
    """
    Get global configuration instance

    Returns:
        WriterSettings instance (loads if not already loaded)
    """
    global _settings
    if _settings is None:
        _settings = WriterSettings()
    return _settings

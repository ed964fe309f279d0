"""
Stats Sink Configuration Loader

Loads configuration from multiple sources with precedence:
1. Environment variables (highest priority)
2. statsink.conf file (TOML format)
3. Built-in defaults (lowest priority)
"""

import os
import logging
import socket
from pathlib import Path
from typing import Any, Dict

import toml

from config import StatsSinkConfig

logger = logging.getLogger(__name__)


def _parse_bool(value: str) -> bool:
    return value.lower() == "true"


ENV_MAPPINGS = {
    # Host identity
    "STATS_MACHINE_NAME": ("machine_name",),

    # InfluxDB
    "INFLUX_HOST": ("influxdb", "host"),
    "INFLUX_PORT": ("influxdb", "port", int),
    "INFLUX_USER": ("influxdb", "username"),
    "INFLUX_PASSWORD": ("influxdb", "password"),
    "INFLUX_DATABASE": ("influxdb", "database"),
    "INFLUX_TABLE": ("influxdb", "table"),
    "INFLUX_SSL": ("influxdb", "ssl", _parse_bool),
    "INFLUX_VERIFY_SSL": ("influxdb", "verify_ssl", _parse_bool),
    "INFLUX_TIMEOUT": ("influxdb", "timeout_seconds", float),

    # Buffering
    "STATS_BUFFER_DURATION": ("buffer", "buffer_duration_seconds", float),

    # Logging
    "LOG_LEVEL": ("logging", "level"),
    "LOG_FORMAT": ("logging", "format"),
    "LOG_INCLUDE_TRACE": ("logging", "include_trace", _parse_bool),
}


class StatsSinkConfigLoader:
    """Layered configuration manager"""

    def __init__(self, config_file: str = None):
        """
        Initialize configuration

        Args:
            config_file: Path to statsink.conf file (default: ./statsink.conf)
        """
        self.config_file = config_file or os.getenv("STATSINK_CONFIG_FILE", "statsink.conf")
        self.config: Dict[str, Any] = {}

        # Load configuration in order of precedence
        self._load_defaults()
        self._load_config_file()
        self._load_env_overrides()

    def _load_defaults(self):
        """Load built-in default configuration"""
        self.config = {
            "machine_name": socket.gethostname(),
            "influxdb": {
                "host": "localhost",
                "port": 8086,
                "username": "",
                "password": "",
                "database": "cadvisor",
                "table": "stats",
                "ssl": False,
                "verify_ssl": False,
            },
            "buffer": {
                "buffer_duration_seconds": 60.0,
            },
            "logging": {
                "level": "INFO",
                "format": "structured",
                "include_trace": False,
            },
        }

    def _load_config_file(self):
        """Load configuration from the TOML file, if present"""
        config_path = Path(self.config_file)

        if not config_path.exists():
            logger.info(f"Config file not found: {self.config_file}, using defaults")
            return

        file_config = toml.load(config_path)
        logger.info(f"Loaded configuration from: {self.config_file}")

        # Merge file config into defaults (deep merge)
        self._deep_merge(self.config, file_config)

    def _load_env_overrides(self):
        """Load environment variable overrides"""
        for env_var, mapping in ENV_MAPPINGS.items():
            value = os.getenv(env_var)
            if value is None:
                continue

            # Extract path and converter
            if callable(mapping[-1]):
                *path, converter = mapping
            else:
                path, converter = list(mapping), None

            if converter:
                try:
                    value = converter(value)
                except ValueError as e:
                    logger.warning(f"Failed to convert {env_var}={value}: {e}")
                    continue

            self._set_nested(self.config, path, value)
            logger.debug(f"Environment override: {env_var}")

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
            *path: Path to config value (e.g., "influxdb", "host")
            default: Default value if not found
        """
        value = self.config
        for key in path:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def to_config(self) -> StatsSinkConfig:
        """Validate the merged configuration"""
        return StatsSinkConfig(**self.config)

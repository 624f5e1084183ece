"""
Configuration manager for the forest widget data engine.

This module provides a class for loading, accessing, and saving configuration
from YAML files. Nested properties are addressed with dot notation, and a few
environment variables can override the file (Data API URL and key) so
deployments do not have to write credentials to disk.
"""

import copy
import os
import logging
from typing import Any, Dict, List, Optional

import yaml

from config.constants import (
    DEFAULT_CONFIG,
    DEFAULT_CONFIG_PATH,
    DEFAULT_DATA_API_URL,
    DEFAULT_DATASET_VERSION,
    DEFAULT_GEOSTORE_ORIGIN,
    DEFAULT_MAX_WORKERS,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_CACHE_DURATION,
    ENV_DATA_API_KEY,
    ENV_DATA_API_URL,
)

# Set up logger
logger = logging.getLogger(__name__)


class ConfigManager:
    """
    Configuration manager that reads from YAML files with dot notation access.

    Attributes:
        config_path (str): Path to the YAML configuration file
        config (dict): The loaded configuration dictionary
    """

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH, create_missing: bool = True):
        """
        Initialize the configuration manager

        Args:
            config_path (str): Path to the YAML configuration file
            create_missing (bool): Write a default file when none exists
        """
        self.config_path = config_path
        self.create_missing = create_missing
        self.config = {}

        self.load_config()

    def load_config(self) -> None:
        """
        Load configuration from YAML file

        Defaults are deep-copied first so merging never mutates the module
        level DEFAULT_CONFIG. A broken file is logged and ignored.
        """
        self.config = copy.deepcopy(DEFAULT_CONFIG)

        if os.path.exists(self.config_path):
            try:
                with open(self.config_path, 'r') as f:
                    loaded_config = yaml.safe_load(f) or {}
                self._deep_merge(self.config, loaded_config)
            except (OSError, yaml.YAMLError) as e:
                logger.error(f"Error loading configuration file: {str(e)}")
        elif self.create_missing:
            logger.info(f"Configuration file not found. Creating default at {self.config_path}")
            self.save()

        self._apply_environment()

    def _apply_environment(self) -> None:
        """Let environment variables override file values."""
        base_url = os.environ.get(ENV_DATA_API_URL)
        if base_url:
            self.set('data_api.base_url', base_url)
        api_key = os.environ.get(ENV_DATA_API_KEY)
        if api_key:
            self.set('data_api.api_key', api_key)

    def _deep_merge(self, base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge `update` into `base`, modifying base"""
        for key, value in update.items():
            if isinstance(value, dict) and isinstance(base.get(key), dict):
                base[key] = self._deep_merge(base[key], value)
            else:
                base[key] = value
        return base

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation

        Args:
            key: Configuration key (e.g. 'data_api.timeout')
            default: Default value to return if key not found

        Returns:
            The configuration value or default
        """
        value = self.config
        for part in key.split('.'):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return value

    def get_int(self, key: str, default: Optional[int] = None) -> Optional[int]:
        """Get an integer configuration value, or default if it does not convert"""
        try:
            return int(self.get(key, default))
        except (TypeError, ValueError):
            return default

    def get_float(self, key: str, default: Optional[float] = None) -> Optional[float]:
        """Get a float configuration value, or default if it does not convert"""
        try:
            return float(self.get(key, default))
        except (TypeError, ValueError):
            return default

    def get_bool(self, key: str, default: Optional[bool] = None) -> Optional[bool]:
        """Get a boolean configuration value; strings like 'yes'/'on' count as True"""
        value = self.get(key, default)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() in ('true', 'yes', '1', 'on')
        return default

    def get_list(self, key: str, default: Optional[List[Any]] = None) -> Optional[List[Any]]:
        value = self.get(key, default)
        return value if isinstance(value, list) else default

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value using dot notation

        Args:
            key: Configuration key (can be nested with dots)
            value: Value to set
        """
        parts = key.split('.')
        node = self.config
        for part in parts[:-1]:
            if not isinstance(node.get(part), dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value

    def save(self) -> bool:
        """
        Save configuration to YAML file

        Returns:
            bool: True if save was successful, False otherwise
        """
        try:
            config_dir = os.path.dirname(self.config_path)
            if config_dir:
                os.makedirs(config_dir, exist_ok=True)
            with open(self.config_path, 'w') as f:
                yaml.safe_dump(self.config, f, default_flow_style=False)
            return True
        except OSError as e:
            logger.error(f"Error saving configuration: {str(e)}")
            return False

    # Domain accessors

    def get_data_api_url(self) -> str:
        return str(self.get('data_api.base_url', DEFAULT_DATA_API_URL)).rstrip('/')

    def get_dataset_version(self) -> str:
        return self.get('data_api.version', DEFAULT_DATASET_VERSION)

    def get_api_key(self) -> Optional[str]:
        """Data API key, or None when unset"""
        return self.get('data_api.api_key') or None

    def get_request_timeout(self) -> float:
        return self.get_float('data_api.timeout', DEFAULT_REQUEST_TIMEOUT)

    def get_geostore_origin(self) -> str:
        return self.get('data_api.geostore_origin', DEFAULT_GEOSTORE_ORIGIN)

    def get_max_workers(self) -> int:
        return self.get_int('widgets.max_workers', DEFAULT_MAX_WORKERS)

    def get_metadata_cache_duration(self) -> int:
        return self.get_int('metadata.cache_duration', DEFAULT_CACHE_DURATION)

    def get_fetch_remote_metadata(self) -> bool:
        return bool(self.get_bool('metadata.fetch_remote', False))

    def get_dataset_bounds(self) -> Dict[str, Dict[str, str]]:
        """Static dataset date bounds, keyed by metadata key"""
        return self.get('metadata.datasets', {}) or {}

    def get_log_level(self) -> str:
        return str(self.get('logging.level', 'INFO')).upper()

"""
Configuration management package for the forest widget data engine.

This package provides functionality for loading, storing, and managing
application configuration from YAML files.
"""

from config.config_manager import ConfigManager
from config.constants import DEFAULT_CONFIG_PATH

__all__ = ['ConfigManager', 'DEFAULT_CONFIG_PATH']

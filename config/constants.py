"""
Constants for the forest widget data engine configuration.

This module provides default paths, endpoints, dataset tables and the
default configuration structure used throughout the application.
"""

import os

# Configuration file path
DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), "config", "config.yml")

# Default Data API settings
DEFAULT_DATA_API_URL = "https://data-api.globalforestwatch.org"
DEFAULT_DATASET_VERSION = "latest"
DEFAULT_REQUEST_TIMEOUT = 30  # seconds
DEFAULT_GEOSTORE_ORIGIN = "rw"

# Environment variables that override the YAML file
ENV_DATA_API_URL = "GFW_DATA_API_URL"
ENV_DATA_API_KEY = "GFW_DATA_API_KEY"

# Default metadata cache duration (in seconds)
DEFAULT_CACHE_DURATION = 3600  # 1 hour

# Worker threads used to run widget pipelines
DEFAULT_MAX_WORKERS = 8

# Alert system -> raw OTF dataset
ALERT_SYSTEM_TABLES = {
    "all": "gfw_integrated_alerts",
    "glad_l": "umd_glad_landsat_alerts",
    "glad_s2": "umd_glad_sentinel2_alerts",
    "radd": "wur_radd_alerts",
}

CONFIDENCE_BUCKETS = ("nominal", "high", "highest")

# Reference bounds used when no metadata provider is reachable
DEFAULT_DATASET_BOUNDS = {
    "GLAD": {
        "min_date": "2015-01-01",
        "max_date": "2024-12-31",
        "default_start_date": "2024-07-01",
        "default_end_date": "2024-12-31",
    },
    "LOSS": {
        "min_date": "2001-01-01",
        "max_date": "2023-12-31",
        "default_start_date": "2002-01-01",
        "default_end_date": "2023-12-31",
    },
}

# Default configuration structure
DEFAULT_CONFIG = {
    "data_api": {
        "base_url": DEFAULT_DATA_API_URL,
        "version": DEFAULT_DATASET_VERSION,
        "api_key": "",
        "timeout": DEFAULT_REQUEST_TIMEOUT,
        "geostore_origin": DEFAULT_GEOSTORE_ORIGIN,
    },
    "metadata": {
        "cache_duration": DEFAULT_CACHE_DURATION,
        "fetch_remote": False,
        "datasets": DEFAULT_DATASET_BOUNDS,
    },
    "widgets": {
        "max_workers": DEFAULT_MAX_WORKERS,
    },
    "logging": {
        "level": "INFO",
    },
}

# Metadata key -> Data API dataset whose content date range provides the bounds
METADATA_DATASETS = {
    "GLAD": "gfw_integrated_alerts",
    "LOSS": "umd_tree_cover_loss",
}

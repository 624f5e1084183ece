"""
Global metadata provider.

Supplies per-dataset date bounds (earliest/latest available date and the
default analysis window) consumed by the parameter resolver. Bounds come from
configuration and, when enabled, from the Data API dataset metadata, cached
for a configurable duration.
"""

import logging
import time
from typing import Any, Dict, Mapping, Optional

from config.constants import DEFAULT_CACHE_DURATION, METADATA_DATASETS
from models.data_models import DatasetBounds, GlobalMetadata
from models.errors import ExecutionError, NormalizationError

# Set up logger
logger = logging.getLogger(__name__)


class MetadataService:
    """
    Service returning GlobalMetadata.

    Attributes:
        static_bounds (dict): Bounds from configuration, keyed by metadata key
        client: Optional Data API client for remote dataset metadata
        cache_duration (int): Duration in seconds to cache remote metadata
    """

    def __init__(
        self,
        static_bounds: Optional[Mapping[str, Mapping[str, str]]] = None,
        client=None,
        cache_duration: int = DEFAULT_CACHE_DURATION,
        remote_datasets: Optional[Mapping[str, str]] = None
    ):
        self.static_bounds = dict(static_bounds or {})
        self.client = client
        self.cache_duration = cache_duration
        self.remote_datasets = dict(remote_datasets or METADATA_DATASETS)

        self._cache = None
        self._cache_timestamp = 0.0

    def _from_cache(self) -> Optional[GlobalMetadata]:
        if self._cache is not None and time.time() - self._cache_timestamp < self.cache_duration:
            return self._cache
        return None

    def get_metadata(self, force_refresh: bool = False) -> GlobalMetadata:
        """
        Return the current global metadata.

        Args:
            force_refresh: If True, bypass the cache

        Returns:
            GlobalMetadata; remote failures fall back to the static bounds
        """
        if not force_refresh:
            cached = self._from_cache()
            if cached is not None:
                logger.debug("Returning cached global metadata")
                return cached

        datasets = {key: DatasetBounds(**dict(values)) for key, values in self.static_bounds.items()}

        if self.client is not None:
            for key, dataset in self.remote_datasets.items():
                try:
                    remote = self._fetch_bounds(dataset, datasets.get(key))
                except (ExecutionError, NormalizationError) as e:
                    logger.warning(f"Could not load metadata for {dataset}, using configured bounds: {str(e)}")
                    continue
                if remote is not None:
                    datasets[key] = remote

        metadata = GlobalMetadata(datasets=datasets)
        self._cache = metadata
        self._cache_timestamp = time.time()
        return metadata

    def _fetch_bounds(self, dataset: str, fallback: Optional[DatasetBounds]) -> Optional[DatasetBounds]:
        document = self.client.get_dataset_metadata(dataset)
        date_range = (document.get('metadata') or {}).get('content_date_range') or {}
        start, end = date_range.get('start_date'), date_range.get('end_date')
        if not start or not end:
            return None

        return DatasetBounds(
            min_date=start,
            max_date=end,
            default_start_date=fallback.default_start_date if fallback else start,
            default_end_date=end,
        )

    @staticmethod
    def from_mapping(bounds: Mapping[str, Dict[str, Any]]) -> GlobalMetadata:
        """Build GlobalMetadata directly from plain dictionaries."""
        return GlobalMetadata(datasets={k: DatasetBounds(**dict(v)) for k, v in bounds.items()})

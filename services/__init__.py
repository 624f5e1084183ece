"""
Services package for the forest widget data engine.

This package provides the Data API client, the metadata provider, the
stages of the widget fetch pipeline and the service orchestrating them.
"""

from services.data_api_client import DataAPIClient
from services.download_builder import DownloadBuilder
from services.metadata_service import MetadataService
from services.parameter_resolver import ParameterResolver
from services.query_builder import QueryBuilder
from services.result_normalizer import ResultNormalizer
from services.widget_service import WidgetDataService

__all__ = [
    'DataAPIClient',
    'DownloadBuilder',
    'MetadataService',
    'ParameterResolver',
    'QueryBuilder',
    'ResultNormalizer',
    'WidgetDataService'
]

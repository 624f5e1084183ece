"""
Models package for the forest widget data engine.

This package provides the data classes, query structures and error types
shared across the application.
"""

from models.data_models import (
    AnalysisResult,
    AreaStatus,
    DataSource,
    FetchState,
    FetchStatus,
    LocationContext,
    LocationType,
    WidgetDescriptor,
)
from models.errors import ConfigurationError, ExecutionError, NormalizationError, WidgetEngineError
from models.query import GeometryBinding, PrecomputedRequest, QuerySpec

__all__ = [
    'AnalysisResult',
    'AreaStatus',
    'DataSource',
    'FetchState',
    'FetchStatus',
    'LocationContext',
    'LocationType',
    'WidgetDescriptor',
    'ConfigurationError',
    'ExecutionError',
    'NormalizationError',
    'WidgetEngineError',
    'GeometryBinding',
    'PrecomputedRequest',
    'QuerySpec'
]

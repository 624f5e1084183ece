"""
Exception hierarchy for the widget data engine.

Not-ready parameter bags are deliberately absent from this module: a widget
waiting on a pending key simply does not fetch, which is not an error.
"""


class WidgetEngineError(Exception):
    """Base class for all errors raised by the widget data engine."""


class ConfigurationError(WidgetEngineError):
    """
    Raised when a widget descriptor or query spec is malformed.

    This is a programming or configuration defect (empty projection, unknown
    operator, missing geometry binding for a geometry-backed location, ...).
    It is raised before any network call and is never recorded on a
    FetchState.
    """


class ExecutionError(WidgetEngineError):
    """Raised when the query execution or precomputed boundary fails."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class NormalizationError(WidgetEngineError):
    """Raised when a response does not have the expected shape."""

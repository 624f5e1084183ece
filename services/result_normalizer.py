"""
Result normalization.

Maps precomputed-table responses and on-the-fly row sets into one
AnalysisResult. Widget-specific shaping is delegated to the descriptor's
`shape` callback; everything else (unit coercion, totals, confidence
breakdown, served date range) is generic.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd

from models.data_models import (
    AnalysisResult,
    DataSource,
    DatasetBounds,
    SubRequest,
    WidgetDescriptor,
)
from models.errors import NormalizationError
from models.query import PrecomputedRequest
from services.query_builder import confidence_totals
from utils.data_processing import (
    COUNT,
    coerce_numeric_columns,
    frame_from_rows,
    frame_to_records,
    infer_unit,
    unit_totals,
)

logger = logging.getLogger(__name__)


class ResultNormalizer:
    """Normalizes raw responses into AnalysisResult objects."""

    def normalize(
        self,
        descriptor: WidgetDescriptor,
        responses: Mapping[str, Any],
        params: Mapping[str, Any],
        source: DataSource,
        requests: Optional[Mapping[str, SubRequest]] = None,
        bounds: Optional[DatasetBounds] = None
    ) -> AnalysisResult:
        """
        Normalize the responses of one fetch.

        Args:
            descriptor: Widget descriptor
            responses: Raw response per sub-request name (row list or {'data': rows})
            params: Resolved parameter values used for the fetch
            source: Data source that served the fetch
            requests: Sub-requests by name, used to guarantee projected columns
            bounds: Dataset bounds for the option ranges

        Returns:
            AnalysisResult

        Raises:
            NormalizationError: If a response or the shaped data has an unexpected shape
        """
        requests = requests or {}
        frames: Dict[str, pd.DataFrame] = {}
        for name, response in responses.items():
            rows = self._extract_rows(descriptor.widget, name, response)
            columns = self._expected_columns(requests.get(name))
            frames[name] = coerce_numeric_columns(frame_from_rows(rows, columns), descriptor.units)

        try:
            shaped = descriptor.shape(frames, params)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise NormalizationError(f"{descriptor.widget}: could not shape response: {str(e)}") from e
        if not isinstance(shaped, dict):
            raise NormalizationError(f"{descriptor.widget}: shape returned {type(shaped).__name__}, not dict")

        shaped = dict(shaped)
        settings = self._settings_used(descriptor, params)
        settings.update(shaped.pop('settings', None) or {})
        options = self._option_bounds(bounds)
        options.update(shaped.pop('options', None) or {})

        start_key, end_key = descriptor.date_keys
        start, end = settings.get(start_key), settings.get(end_key)

        return AnalysisResult(
            widget=descriptor.widget,
            source=source,
            data=shaped,
            rows={name: frame_to_records(df) for name, df in frames.items()},
            settings=settings,
            options=options,
            totals={name: unit_totals(df, descriptor.units) for name, df in frames.items()},
            confidence=self._confidence(descriptor, frames, params),
            date_range=(start, end) if start is not None and end is not None else None,
        )

    def _extract_rows(self, widget: str, name: str, response: Any) -> List[Mapping[str, Any]]:
        if response is None:
            return []
        rows = response.get('data') if isinstance(response, Mapping) else response
        if rows is None:
            return []
        if not isinstance(rows, list) or not all(isinstance(row, Mapping) for row in rows):
            raise NormalizationError(f"{widget}: response '{name}' is not a list of rows")
        return rows

    def _expected_columns(self, request: Optional[SubRequest]) -> List[str]:
        if request is None:
            return []
        spec = request.query if isinstance(request, PrecomputedRequest) else request
        return list(spec.output_names)

    def _settings_used(self, descriptor: WidgetDescriptor, params: Mapping[str, Any]) -> Dict[str, Any]:
        keys = set(descriptor.settings_keys) | set(descriptor.settings.keys()) | set(descriptor.date_keys)
        return {key: params.get(key) for key in sorted(keys) if params.get(key) is not None}

    def _option_bounds(self, bounds: Optional[DatasetBounds]) -> Dict[str, Any]:
        if bounds is None:
            return {}
        return {'minDate': bounds.min_date, 'maxDate': bounds.max_date}

    def _confidence(self, descriptor: WidgetDescriptor, frames: Mapping[str, pd.DataFrame], params: Mapping[str, Any]):
        field = descriptor.confidence_field
        if not field:
            return None

        tagged = [df for df in frames.values() if field in df.columns]
        if not tagged:
            return None
        combined = pd.concat(tagged, ignore_index=True)
        count_key = next(
            (str(c) for c in combined.columns if infer_unit(str(c), descriptor.units) == COUNT),
            'count'
        )
        return confidence_totals(
            frame_to_records(combined),
            field,
            count_key=count_key,
            confirmed_only=params.get('confirmedOnly') in (1, True),
        )

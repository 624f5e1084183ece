"""
Parameter resolution for widgets.

Merges location context, user settings and global reference metadata into
one resolved parameter bag and decides whether the widget is ready to fetch.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from models.data_models import (
    DatasetBounds,
    GlobalMetadata,
    LocationContext,
    ResolvedParams,
    WidgetDescriptor,
)
from utils.data_processing import fingerprint

logger = logging.getLogger(__name__)


class ParameterResolver:
    """
    Resolves widget parameters.

    Priority for every settings key: explicit user setting, then the
    widget-declared default, then a default derived from global metadata
    (e.g. an alert start date defaulting to the dataset's default start).
    """

    def resolve(
        self,
        descriptor: WidgetDescriptor,
        location: LocationContext,
        user_settings: Optional[Mapping[str, Any]] = None,
        metadata: Optional[GlobalMetadata] = None,
        context: Optional[Mapping[str, Any]] = None
    ) -> ResolvedParams:
        """
        Build the resolved parameter bag for one widget.

        Args:
            descriptor: Widget descriptor
            location: Current location
            user_settings: Settings chosen by the user
            metadata: Global reference metadata
            context: Explicit page context (e.g. {'is_map_page': True})

        Returns:
            ResolvedParams; `ready` is False iff a pending key is unresolved
        """
        user_settings = dict(user_settings or {})
        bounds = metadata.bounds(descriptor.metadata_key) if metadata else None

        values: Dict[str, Any] = {}
        for key in self._ordered_keys(descriptor, user_settings):
            values[key] = self._resolve_key(descriptor, key, user_settings, bounds)

        for spec in descriptor.settings_config:
            if spec.is_range:
                start, end = values.get(spec.start_key), values.get(spec.end_key)
                values[spec.key] = (start, end) if start is not None and end is not None else None

        # location and page context are never overridable by settings
        values.update(dict(context or {}))
        values.update(location.to_params())

        missing = tuple(sorted(k for k in descriptor.pending_keys if values.get(k) is None))
        if missing:
            logger.debug(f"{descriptor.widget} not ready, waiting on {list(missing)}")

        return ResolvedParams(
            values=values,
            ready=not missing,
            missing=missing,
            fingerprint=fingerprint(values),
        )

    def _ordered_keys(self, descriptor: WidgetDescriptor, user_settings: Mapping[str, Any]) -> List[str]:
        keys: List[str] = []
        sources: Iterable[Iterable[str]] = (
            (k for spec in descriptor.settings_config for k in spec.keys),
            descriptor.settings.keys(),
            descriptor.metadata_defaults.keys(),
            user_settings.keys(),
        )
        for source in sources:
            for key in source:
                if key not in keys:
                    keys.append(key)
        return keys

    def _resolve_key(
        self,
        descriptor: WidgetDescriptor,
        key: str,
        user_settings: Mapping[str, Any],
        bounds: Optional[DatasetBounds]
    ) -> Any:
        spec = descriptor.setting(key)
        checked = spec is not None and spec.key == key and not spec.is_range

        value = user_settings.get(key)
        if value is not None:
            if not checked or spec.accepts(value):
                return value
            logger.warning(f"{descriptor.widget}: dropping invalid value {value!r} for setting {key}")

        value = descriptor.settings.get(key)
        if value is not None:
            return value

        attribute = descriptor.metadata_defaults.get(key)
        if attribute and bounds is not None:
            return getattr(bounds, attribute, None)
        return None

"""
Data source routing: precomputed summary tables or on-the-fly analysis.
"""

from typing import Any, Mapping, Optional

from models.data_models import DataSource, LocationContext, LocationType, WidgetDescriptor
from models.errors import ConfigurationError


def location_scope(location: LocationContext) -> str:
    """
    Scope key of a location, as used in `WidgetDescriptor.precomputed_scopes`.

    Every LocationType is matched explicitly.
    """
    if location.type == LocationType.GLOBAL:
        return 'global'
    if location.type == LocationType.COUNTRY:
        return 'adm0'
    if location.type == LocationType.REGION:
        return 'adm2' if location.adm2 is not None else 'adm1'
    if location.type == LocationType.PROTECTED_AREA:
        return 'wdpa'
    if location.type == LocationType.USER_AREA:
        return 'aoi'
    if location.type == LocationType.USE_AREA:
        return 'use'
    raise ConfigurationError(f"Unhandled location type: {location.type!r}")


def route(
    descriptor: WidgetDescriptor,
    location: LocationContext,
    params: Optional[Mapping[str, Any]] = None
) -> DataSource:
    """
    Pick the data source for one fetch.

    1. Draft user areas, and location types the widget always computes live,
       go on-the-fly.
    2. Scopes with a materialized aggregate read the precomputed tables.
    3. Everything else goes on-the-fly.

    Pure function of its inputs. `params` is accepted for signature parity
    with the other pipeline stages.
    """
    if location.is_draft or location.type in descriptor.live_types:
        return DataSource.ON_THE_FLY
    if location_scope(location) in descriptor.precomputed_scopes:
        return DataSource.PRECOMPUTED
    return DataSource.ON_THE_FLY

"""
Helpers shared by widget descriptors: summary table naming, location
scoping of queries, and forest type / land category filters.
"""

from typing import Any, Mapping, Optional, Tuple

from models.data_models import LocationContext, LocationType
from models.errors import ConfigurationError
from models.query import AdminScope, Predicate, QuerySpec, eq

# Forest type / land category setting value -> boolean flag column
FOREST_TYPE_FIELDS = {
    'primary_forest': 'is__umd_regional_primary_forest_2001',
    'ifl': 'is__ifl_intact_forest_landscapes_2016',
    'mangroves_2016': 'is__gmw_global_mangrove_extent_2016',
    'plantations': 'is__gfw_planted_forests',
}

LAND_CATEGORY_FIELDS = {
    'wdpa': 'is__wdpa_protected_areas',
    'kba': 'is__birdlife_key_biodiversity_areas',
    'landmark': 'is__landmark_indigenous_and_community_lands',
    'mining': 'is__gfw_mining_concessions',
    'peatlands': 'is__gfw_peatlands',
}

# Countries with tropical forest cover, used to whitelist tropical-only widgets
TROPICAL_ISOS = (
    'AGO', 'ATG', 'AUS', 'BDI', 'BEN', 'BFA', 'BGD', 'BHS', 'BLZ', 'BOL', 'BRA',
    'BRB', 'BRN', 'BTN', 'BWA', 'CAF', 'CHN', 'CIV', 'CMR', 'COD', 'COG', 'COL',
    'COM', 'CPV', 'CRI', 'CUB', 'DMA', 'DOM', 'ECU', 'ETH', 'FJI', 'FSM', 'GAB',
    'GHA', 'GIN', 'GLP', 'GMB', 'GNB', 'GNQ', 'GRD', 'GTM', 'GUF', 'GUY', 'HND',
    'HTI', 'IDN', 'IND', 'JAM', 'KEN', 'KHM', 'LAO', 'LBR', 'LKA', 'MDG', 'MEX',
    'MMR', 'MOZ', 'MWI', 'MYS', 'NCL', 'NGA', 'NIC', 'NPL', 'PAN', 'PER', 'PHL',
    'PNG', 'PRI', 'PRY', 'RWA', 'SEN', 'SLB', 'SLE', 'SLV', 'SOM', 'SSD', 'SUR',
    'TCD', 'TGO', 'THA', 'TLS', 'TTO', 'TZA', 'UGA', 'VEN', 'VNM', 'VUT', 'ZMB',
    'ZWE',
)


def summary_table(location: LocationContext, family: str, suffix: str) -> str:
    """
    Name of the materialized table of a dataset family for a location.

    e.g. ('tcl', 'change') -> gadm__tcl__adm1_change for a first-level region.
    """
    if location.type in (LocationType.GLOBAL, LocationType.COUNTRY):
        return f"gadm__{family}__iso_{suffix}"
    if location.type == LocationType.REGION:
        level = 'adm2' if location.adm2 is not None else 'adm1'
        return f"gadm__{family}__{level}_{suffix}"
    if location.type == LocationType.PROTECTED_AREA:
        return f"wdpa_protected_areas__{family}__{suffix}"
    if location.type == LocationType.USER_AREA:
        return f"geostore__{family}__{suffix}"
    raise ConfigurationError(f"No materialized {family} table for {location.type.value} locations")


def scope_for(location: LocationContext) -> AdminScope:
    """Administrative or geometry scope of a precomputed read."""
    if location.type == LocationType.PROTECTED_AREA:
        return AdminScope(wdpa_id=location.area_id)
    if location.type == LocationType.USER_AREA:
        return AdminScope(geostore_id=location.geostore)
    return AdminScope(adm0=location.adm0, adm1=location.adm1, adm2=location.adm2)


def bind_location(spec: QuerySpec, location: LocationContext, origin: str = 'rw') -> QuerySpec:
    """Scope an on-the-fly query to a location: geostore if any, else admin path."""
    if location.geostore:
        return spec.bind_geometry(location.geostore, origin)
    return spec.filter(*AdminScope(location.adm0, location.adm1, location.adm2).predicates())


def indicator_predicates(
    params: Mapping[str, Any],
    forest_type: Optional[str] = '',
    land_category: Optional[str] = ''
) -> Tuple[Predicate, ...]:
    """
    Flag predicates for the forest type and land category.

    Pass `forest_type=None` / `land_category=None` to drop a filter; the
    default empty string means "take it from params".
    """
    forest = params.get('forestType') if forest_type == '' else forest_type
    category = params.get('landCategory') if land_category == '' else land_category

    predicates = []
    if forest:
        if forest not in FOREST_TYPE_FIELDS:
            raise ConfigurationError(f"Unknown forest type: {forest!r}")
        predicates.append(eq(FOREST_TYPE_FIELDS[forest], True))
    if category:
        if category not in LAND_CATEGORY_FIELDS:
            raise ConfigurationError(f"Unknown land category: {category!r}")
        predicates.append(eq(LAND_CATEGORY_FIELDS[category], True))
    return tuple(predicates)


def frame_sum(frame, column: str, default=0):
    """Sum of a column as a plain Python number; `default` for missing frames or columns."""
    if frame is None or frame.empty or column not in frame.columns:
        return default
    return frame[column].sum().item()

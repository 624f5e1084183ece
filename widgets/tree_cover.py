"""
Tree cover by type widget.

Compares tree cover (natural forest and plantations) against the total land
area of a location for the selected extent year. The 2020 extent comes from
the tropical tree cover dataset, which is filtered by decile rather than by
canopy density threshold.
"""

from typing import Any, Dict, Mapping

import pandas as pd

from models.data_models import DataSource, LocationContext, LocationType, SettingSpec, WidgetDescriptor
from models.query import PrecomputedRequest, eq, gte, query, total
from widgets.common import LAND_CATEGORY_FIELDS, bind_location, frame_sum, indicator_predicates, scope_for, summary_table

WIDGET = 'treeCover'

EXTENT_YEARS = (2000, 2010, 2020)
CANOPY_THRESHOLDS = (10, 15, 20, 25, 30, 50, 75)
DECILES = (10, 20, 30, 40, 50, 60, 70, 80, 90)

THRESHOLD_FIELD = 'umd_tree_cover_density_{year}__threshold'
DECILE_FIELD = 'wri_tropical_tree_cover__decile'


def is_tropical(params: Mapping[str, Any]) -> bool:
    return int(params['extentYear']) not in (2000, 2010)


def _density_predicate(params, source):
    year = int(params['extentYear'])
    if is_tropical(params):
        return gte(DECILE_FIELD, params['decile'])
    field = THRESHOLD_FIELD.format(year=2000 if year == 2000 else 2010)
    if source == DataSource.PRECOMPUTED:
        return eq(field, params['threshold'])
    return gte(field, params['threshold'])


def _extent_spec(params, location, source, forest_type=None, land_category=''):
    filters = indicator_predicates(params, forest_type=forest_type, land_category=land_category)
    year = int(params['extentYear'])

    if source == DataSource.PRECOMPUTED:
        if is_tropical(params):
            table = summary_table(location, 'ttc', 'summary')
            extent_field = 'wri_tropical_tree_cover_extent__ha'
        else:
            table = summary_table(location, 'tcl', 'summary')
            extent_field = f"umd_tree_cover_extent_{year}__ha"
        spec = (
            query(table)
            .project(total(extent_field, alias='extent__ha'), total('area__ha', alias='total_area__ha'))
            .filter(_density_predicate(params, source), *filters)
        )
        return PrecomputedRequest(query=spec, scope=scope_for(location))

    table = 'wri_tropical_tree_cover' if is_tropical(params) else f"umd_tree_cover_density_{2000 if year == 2000 else 2010}"
    spec = (
        query(table)
        .project(total('area__ha', alias='extent__ha'))
        .filter(_density_predicate(params, source), *filters)
    )
    return bind_location(spec, location)


def _area_spec(params, location):
    spec = query('umd_tree_cover_density_2000').project(total('area__ha', alias='total_area__ha'))
    return bind_location(spec, location)


def build_requests(params: Mapping[str, Any], location: LocationContext, source: DataSource, download: bool = False):
    """
    Precomputed reads return cover in the selected category, the admin
    extent with no category, and plantations. Live reads only carry the
    total area and the extent. Forest type is fixed per read; only the land
    category follows the settings.
    """
    if source == DataSource.PRECOMPUTED:
        return {
            'cover': _extent_spec(params, location, source),
            'admin': _extent_spec(params, location, source, forest_type=None, land_category=None),
            'plantations': _extent_spec(params, location, source, forest_type='plantations'),
        }

    return {
        'area': _area_spec(params, location),
        'extent': _extent_spec(params, location, source),
    }


def shape(frames: Dict[str, pd.DataFrame], params: Mapping[str, Any]) -> Dict[str, Any]:
    if 'area' in frames:
        total_area = frame_sum(frames['area'], 'total_area__ha', 0.0)
        total_cover = frame_sum(frames['extent'], 'extent__ha', 0.0)
        cover, plantations = total_cover, 0.0
    else:
        total_area = frame_sum(frames['admin'], 'total_area__ha', 0.0)
        total_cover = frame_sum(frames['admin'], 'extent__ha', 0.0)
        cover = frame_sum(frames['cover'], 'extent__ha', 0.0)
        plantations = frame_sum(frames['plantations'], 'extent__ha', 0.0)

    return {
        'total_area': total_area,
        'total_cover': total_cover,
        'cover': cover,
        'plantations': plantations,
        'non_forest': max(total_area - total_cover, 0.0),
        'percentage': (cover / total_area * 100) if total_area else 0.0,
        'settings': {'extentYear': int(params['extentYear'])},
    }


DESCRIPTOR = WidgetDescriptor(
    widget=WIDGET,
    build_requests=build_requests,
    shape=shape,
    title={
        'default': 'Tree Cover by type in {location}',
        'global': 'Global tree cover by type',
        'withPlantations': 'Forest cover by type in {location}',
    },
    types=tuple(LocationType),
    admins=('global', 'adm0', 'adm1', 'adm2'),
    settings_config=(
        SettingSpec('extentYear', 'select', label='Tree cover dataset', options=EXTENT_YEARS),
        SettingSpec('landCategory', 'select', label='Land Category', options=tuple(LAND_CATEGORY_FIELDS), clearable=True),
        SettingSpec('threshold', 'mini-select', label='Tree cover', options=CANOPY_THRESHOLDS),
        SettingSpec('decile', 'mini-select', label='Tree cover', options=DECILES),
    ),
    settings={'threshold': 30, 'decile': 30, 'extentYear': 2000},
    pending_keys=('threshold', 'decile', 'extentYear'),
    refetch_keys=('threshold', 'decile', 'extentYear', 'landCategory'),
    datasets=(
        {'dataset': 'political-boundaries', 'layers': ('disputed-political-boundaries', 'political-boundaries'), 'boundary': True},
        {'dataset': 'tree-cover', 'layers': ('tree-cover',)},
    ),
    sentences={
        'globalInitial': 'As of {year}, {percentage} of {location} land cover was {threshold} tree cover.',
        'globalWithIndicator': 'As of {year}, {percentage} of {location} tree cover was in {indicator}.',
        'initial': 'As of {year}, {percentage} of {location} was {threshold} tree cover.',
        'hasPlantations': ' was natural forest cover.',
        'noPlantations': ' was tree cover.',
    },
    precomputed_scopes=('global', 'adm0', 'adm1', 'adm2'),
    live_types=(LocationType.USER_AREA,),
    units={'extent__ha': 'ha', 'total_area__ha': 'ha'},
)

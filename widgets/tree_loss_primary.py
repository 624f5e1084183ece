"""
Humid primary forest loss widget.

Combines four independent reads (total tree cover loss of the admin area,
primary forest loss, primary forest extent in 2001, and loss within the
selected land category) into one yearly comparison.
"""

from typing import Any, Dict, Mapping

import pandas as pd

from models.data_models import DataSource, LocationContext, LocationType, SettingSpec, WidgetDescriptor
from models.query import PrecomputedRequest, column, eq, gte, query, total
from utils.data_processing import years_range
from widgets.common import (
    LAND_CATEGORY_FIELDS,
    bind_location,
    frame_sum,
    indicator_predicates,
    scope_for,
    summary_table,
)

WIDGET = 'treeLossPct'

YEAR_FIELD = 'umd_tree_cover_loss__year'
THRESHOLD_FIELD = 'umd_tree_cover_density_2000__threshold'
CANOPY_THRESHOLDS = (10, 15, 20, 25, 30, 50, 75)


def _loss_spec(params, location, source, forest_type, land_category):
    filters = indicator_predicates(params, forest_type=forest_type, land_category=land_category)
    if source == DataSource.PRECOMPUTED:
        spec = (
            query(summary_table(location, 'tcl', 'change'))
            .project(column(YEAR_FIELD, alias='year'), total('umd_tree_cover_loss__ha', alias='loss__ha'))
            .filter(eq(THRESHOLD_FIELD, params['threshold']), *filters)
            .group(YEAR_FIELD)
        )
        return PrecomputedRequest(query=spec, scope=scope_for(location))

    spec = (
        query('umd_tree_cover_loss')
        .project(column(YEAR_FIELD, alias='year'), total('area__ha', alias='loss__ha'))
        .filter(gte(THRESHOLD_FIELD, params['threshold']), *filters)
        .group(YEAR_FIELD)
    )
    return bind_location(spec, location)


def _extent_spec(params, location, source):
    filters = indicator_predicates(params, forest_type='primary_forest')
    if source == DataSource.PRECOMPUTED:
        spec = (
            query(summary_table(location, 'tcl', 'summary'))
            .project(total('umd_tree_cover_extent_2000__ha', alias='extent__ha'))
            .filter(eq(THRESHOLD_FIELD, params['threshold']), *filters)
        )
        return PrecomputedRequest(query=spec, scope=scope_for(location))

    spec = (
        query('umd_tree_cover_density_2000')
        .project(total('area__ha', alias='extent__ha'))
        .filter(gte(THRESHOLD_FIELD, params['threshold']), *filters)
    )
    return bind_location(spec, location)


def build_requests(params: Mapping[str, Any], location: LocationContext, source: DataSource, download: bool = False):
    """
    Global locations read the country table without a scope, which sums
    over every country. Live and download paths use the same four reads.
    """
    return {
        'admin_loss': _loss_spec(params, location, source, forest_type=None, land_category=None),
        'primary_loss': _loss_spec(params, location, source, forest_type='primary_forest', land_category=''),
        'extent': _extent_spec(params, location, source),
        'loss': _loss_spec(params, location, source, forest_type=None, land_category=''),
    }


def _yearly(frame: pd.DataFrame, start_year: int, end_year: int) -> pd.DataFrame:
    if frame.empty:
        return pd.DataFrame({'year': pd.Series(dtype='int64'), 'loss__ha': pd.Series(dtype='float64')})
    years = pd.to_numeric(frame['year'], errors='coerce')
    selected = frame[(years >= start_year) & (years <= end_year)].copy()
    selected['year'] = pd.to_numeric(selected['year'], errors='coerce').astype('int64')
    return selected.groupby('year', as_index=False)['loss__ha'].sum().sort_values('year')


def shape(frames: Dict[str, pd.DataFrame], params: Mapping[str, Any]) -> Dict[str, Any]:
    start_year, end_year = int(params['startYear']), int(params['endYear'])

    primary = _yearly(frames['primary_loss'], start_year, end_year)
    loss = _yearly(frames['loss'], start_year, end_year)
    admin_loss = _yearly(frames['admin_loss'], start_year, end_year)

    primary_total = frame_sum(primary, 'loss__ha', 0.0)
    loss_total = frame_sum(loss, 'loss__ha', 0.0)
    extent = frame_sum(frames['extent'], 'extent__ha', 0.0)

    available = sorted(
        int(y) for name in ('primary_loss', 'loss', 'admin_loss')
        for y in pd.to_numeric(frames[name].get('year', pd.Series(dtype='float64')), errors='coerce').dropna()
    )
    year_options = years_range(available[0], available[-1]) if available else years_range(start_year, end_year)

    return {
        'primary_loss': primary.to_dict(orient='records'),
        'loss': loss.to_dict(orient='records'),
        'admin_loss': admin_loss.to_dict(orient='records'),
        'extent': extent,
        'total_primary_loss': primary_total,
        'total_loss': loss_total,
        'percentage': (primary_total / loss_total * 100) if loss_total else 0.0,
        'extent_remaining': max(extent - primary_total, 0.0),
        'settings': {'startYear': start_year, 'endYear': end_year, 'yearsRange': years_range(start_year, end_year)},
        'options': {'years': year_options},
    }


DESCRIPTOR = WidgetDescriptor(
    widget=WIDGET,
    build_requests=build_requests,
    shape=shape,
    title={'default': 'Primary Forest loss in {location}', 'global': 'Global Primary Forest loss'},
    types=(
        LocationType.GLOBAL,
        LocationType.COUNTRY,
        LocationType.REGION,
        LocationType.PROTECTED_AREA,
        LocationType.USER_AREA,
    ),
    admins=('global', 'adm0', 'adm1', 'adm2'),
    settings_config=(
        SettingSpec('landCategory', 'select', label='Land Category', options=tuple(LAND_CATEGORY_FIELDS), clearable=True),
        SettingSpec('years', 'range-select', label='years', start_key='startYear', end_key='endYear'),
        SettingSpec('threshold', 'mini-select', label='canopy density', options=CANOPY_THRESHOLDS),
    ),
    settings={'threshold': 30, 'extentYear': 2000, 'forestType': 'primary_forest', 'startYear': 2002},
    pending_keys=('threshold', 'years'),
    refetch_keys=('landCategory', 'threshold'),
    datasets=(
        {'dataset': 'political-boundaries', 'layers': ('disputed-political-boundaries', 'political-boundaries'), 'boundary': True},
        {'dataset': 'tree-cover-loss', 'layers': ('tree-cover-loss',)},
    ),
    sentences={
        'initial': 'From {startYear} to {endYear}, <b>{location} lost {loss} of humid primary forest</b>, making up {percent} of its {total tree cover loss} in the same time period. <b>Total area of humid primary forest in {location} decreased by</b> {extentDelta} in this time period.',
        'withIndicator': 'From {startYear} to {endYear}, <b>{location} lost {loss} of humid primary forest</b> in {indicator}, making up {percent} of its {total tree cover loss} in the same time period. <b>Total area of humid primary forest in {location} in {indicator} decreased by</b> {extentDelta} in this time period.',
        'globalInitial': 'From {startYear} to {endYear}, there was a total of {loss} <b>humid primary forest lost</b> {location}, making up {percent} of its {total tree cover loss} in the same time period.',
        'noLoss': 'From {startYear} to {endYear}, <b>{location} lost {loss} of humid primary forest</b>.',
    },
    whitelists={'indicators': ('primary_forest',)},
    precomputed_scopes=('global', 'adm0', 'adm1', 'adm2', 'wdpa', 'aoi'),
    metadata_key='LOSS',
    metadata_defaults={'endYear': 'max_year'},
    units={'loss__ha': 'ha', 'extent__ha': 'ha'},
    date_keys=('startYear', 'endYear'),
)

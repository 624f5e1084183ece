"""
Integrated deforestation alerts widget.

Counts GLAD-L, GLAD-S2 and RADD alerts (or their integration) between two
dates, broken down by confidence bucket.
"""

from typing import Any, Dict, Mapping

import pandas as pd

from config.constants import ALERT_SYSTEM_TABLES
from models.data_models import DataSource, LocationContext, LocationType, SettingSpec, WidgetDescriptor
from models.query import PrecomputedRequest, column, count, gte, lte, query, total
from services.query_builder import confidence_totals
from utils.data_processing import frame_to_records
from widgets.common import (
    FOREST_TYPE_FIELDS,
    LAND_CATEGORY_FIELDS,
    TROPICAL_ISOS,
    bind_location,
    frame_sum,
    indicator_predicates,
    scope_for,
    summary_table,
)

WIDGET = 'integratedDeforestationAlerts'


def alert_system(params: Mapping[str, Any]) -> str:
    system = params.get('deforestationAlertsDataset') or 'all'
    return system if system in ALERT_SYSTEM_TABLES else 'all'


def build_requests(params: Mapping[str, Any], location: LocationContext, source: DataSource, download: bool = False):
    system_table = ALERT_SYSTEM_TABLES[alert_system(params)]
    date_field = f"{system_table}__date"
    confidence_field = f"{system_table}__confidence"

    projections = [column(confidence_field, alias='confidence')]
    grouping = [confidence_field]
    if download:
        projections.insert(0, column(date_field, alias='alert__date'))
        grouping.insert(0, date_field)

    date_window = (gte(date_field, params['startDate']), lte(date_field, params['endDate']))

    if source == DataSource.PRECOMPUTED:
        spec = (
            query(summary_table(location, 'integrated_alerts', 'daily_alerts'))
            .project(*projections, total('alert__count'), total('alert_area__ha'))
            .filter(*date_window, *indicator_predicates(params))
            .group(*grouping)
        )
        return {'alerts': PrecomputedRequest(query=spec, scope=scope_for(location))}

    spec = (
        query(system_table)
        .project(*projections, count(alias='alert__count'), total('area__ha', alias='alert_area__ha'))
        .filter(*date_window, *indicator_predicates(params))
        .group(*grouping)
    )
    return {'alerts': bind_location(spec, location)}


def shape(frames: Dict[str, pd.DataFrame], params: Mapping[str, Any]) -> Dict[str, Any]:
    alerts = frames['alerts']
    confirmed_only = params.get('confirmedOnly') in (1, True)
    breakdown = confidence_totals(
        frame_to_records(alerts), 'confidence', count_key='alert__count', confirmed_only=confirmed_only
    )
    return {
        'alerts': frame_to_records(alerts),
        'alert_system': alert_system(params),
        'confirmed_only': confirmed_only,
        'sum': breakdown.total,
        'high_count': breakdown.high,
        'highest_count': breakdown.highest,
        'nominal_count': breakdown.nominal,
        'total_area': frame_sum(alerts, 'alert_area__ha', 0.0),
    }


DESCRIPTOR = WidgetDescriptor(
    widget=WIDGET,
    build_requests=build_requests,
    shape=shape,
    title={'default': 'Integrated Deforestation alerts in {location}'},
    types=(
        LocationType.COUNTRY,
        LocationType.REGION,
        LocationType.PROTECTED_AREA,
        LocationType.USER_AREA,
        LocationType.USE_AREA,
    ),
    admins=('adm0', 'adm1', 'adm2'),
    settings_config=(
        SettingSpec('forestType', 'select', label='Forest Type', options=tuple(FOREST_TYPE_FIELDS), clearable=True),
        SettingSpec('landCategory', 'select', label='Land Category', options=tuple(LAND_CATEGORY_FIELDS), clearable=True),
        SettingSpec('dateRange', 'datepicker', label='Range', start_key='startDate', end_key='endDate'),
        SettingSpec('deforestationAlertsDataset', 'select', label='Alert type', options=tuple(ALERT_SYSTEM_TABLES)),
    ),
    settings={'deforestationAlertsDataset': 'all', 'canDownloadUnsaved': True},
    pending_keys=('startDate', 'endDate'),
    refetch_keys=('deforestationAlertsDataset', 'forestType', 'landCategory', 'startDate', 'endDate'),
    datasets=(
        {'dataset': 'political-boundaries', 'layers': ('disputed-political-boundaries', 'political-boundaries'), 'boundary': True},
        {'dataset': 'integrated-deforestation-alerts', 'layers': ('integrated-alerts', 'integrated-alerts-glads', 'integrated-alerts-radd', 'integrated-alerts-glad')},
    ),
    sentences={
        'initial': 'There were {total} deforestation alerts reported in {location} between {startDate} and {endDate}, {totalArea} of which {highConfPerc} were high confidence alerts detected by a single system and {highestConfPerc} were alerts detected by multiple systems.',
        'withInd': 'There were {total} deforestation alerts reported within {indicator} in {location} between {startDate} and {endDate}, {totalArea} of which {highConfPerc} were high confidence alerts detected by a single system and {highestConfPerc} were alerts detected by multiple systems.',
        'singleSystem': 'There were {total} {system} alerts reported in {location} between {startDate} and {endDate}, {totalArea} of which {highConfPerc} were {highConfidenceAlerts}.',
        'highConf': 'There were {total} high or highest confidence {system} alerts reported in {location} between {startDate} and {endDate}, {totalArea}.',
        'noReportedAlerts': 'There were {total} deforestation alerts reported in {location} between {startDate} and {endDate}.',
    },
    whitelists={'adm0': TROPICAL_ISOS},
    precomputed_scopes=('adm0', 'adm1', 'adm2', 'wdpa', 'aoi'),
    metadata_key='GLAD',
    metadata_defaults={'startDate': 'default_start_date', 'endDate': 'default_end_date'},
    units={'alert__count': 'count', 'alert_area__ha': 'ha'},
    confidence_field='confidence',
)

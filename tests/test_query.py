"""Tests for the query AST and its SQL serialization."""

from datetime import date

import pytest

from models.data_models import DataSource
from models.errors import ConfigurationError
from models.query import AdminScope, PrecomputedRequest, Predicate, column, count, eq, gte, is_in, lte, query, total
from utils.sql import quote_literal, to_sql
from widgets import integrated_alerts


def test_composition_returns_new_specs():
    base = query('umd_tree_cover_loss')
    projected = base.project('umd_tree_cover_loss__year', total('area__ha'))

    assert base.select == ()
    assert projected.output_names == ('umd_tree_cover_loss__year', 'area__ha')
    assert projected.bind_geometry('abc').geometry.id == 'abc'
    assert projected.geometry is None


def test_empty_projection_is_rejected():
    with pytest.raises(ConfigurationError):
        query('umd_tree_cover_loss').validate()


def test_mixed_aggregates_need_grouping():
    spec = query('umd_tree_cover_loss').project('umd_tree_cover_loss__year', total('area__ha'))
    with pytest.raises(ConfigurationError):
        spec.validate()
    with pytest.raises(ConfigurationError):
        spec.group('iso').validate()

    assert spec.group('umd_tree_cover_loss__year').validate() is not None


def test_scalar_aggregates_need_no_grouping():
    spec = query('umd_tree_cover_loss').project(total('area__ha'), count())
    assert spec.validate().output_names == ('area__ha', 'count')


def test_missing_geometry_is_rejected_when_required():
    spec = query('gfw_integrated_alerts').project(count())
    with pytest.raises(ConfigurationError):
        spec.validate(require_geometry=True)
    spec.bind_geometry('abc').validate(require_geometry=True)


def test_invalid_identifiers_and_operators():
    with pytest.raises(ConfigurationError):
        column('area; DROP TABLE data')
    with pytest.raises(ConfigurationError):
        Predicate('iso', 'like', 'BR%')
    with pytest.raises(ConfigurationError):
        eq('iso', None)
    with pytest.raises(ConfigurationError):
        total('*')


def test_literals_are_escaped():
    assert quote_literal("O'Brien") == "'O''Brien'"
    assert quote_literal(True) == 'true'
    assert quote_literal(30) == '30'
    assert quote_literal(date(2024, 1, 1)) == "'2024-01-01'"

    spec = query('wdpa').project('name').filter(eq('name', "x' OR '1'='1"))
    assert to_sql(spec) == "SELECT name FROM data WHERE name = 'x'' OR ''1''=''1'"


def test_in_predicate_rendering():
    spec = query('gadm').project('iso').filter(is_in('iso', ['BRA', 'IDN']))
    assert to_sql(spec) == "SELECT iso FROM data WHERE iso IN ('BRA', 'IDN')"


def test_alert_date_window_query(draft_area):
    params = {'startDate': '2024-01-01', 'endDate': '2024-02-01', 'deforestationAlertsDataset': 'all'}
    requests = integrated_alerts.build_requests(params, draft_area, DataSource.ON_THE_FLY)
    spec = requests['alerts']

    date_predicates = [p for p in spec.where if p.field == 'gfw_integrated_alerts__date']
    assert [(p.operator, p.value) for p in date_predicates] == [('gte', '2024-01-01'), ('lte', '2024-02-01')]
    assert spec.geometry.id == 'a1b2c3'
    assert to_sql(spec) == (
        "SELECT gfw_integrated_alerts__confidence AS confidence, COUNT(*) AS alert__count, "
        "SUM(area__ha) AS alert_area__ha FROM data "
        "WHERE gfw_integrated_alerts__date >= '2024-01-01' AND gfw_integrated_alerts__date <= '2024-02-01' "
        "GROUP BY gfw_integrated_alerts__confidence"
    )


def test_alert_system_selects_table(draft_area):
    params = {'startDate': '2024-01-01', 'endDate': '2024-02-01', 'deforestationAlertsDataset': 'radd'}
    spec = integrated_alerts.build_requests(params, draft_area, DataSource.ON_THE_FLY)['alerts']
    assert spec.table == 'wur_radd_alerts'
    assert spec.where[0] == gte('wur_radd_alerts__date', '2024-01-01')
    assert spec.where[1] == lte('wur_radd_alerts__date', '2024-02-01')


def test_precomputed_request_expands_scope():
    spec = query('gadm__tcl__adm1_change').project(total('umd_tree_cover_loss__ha'))
    request = PrecomputedRequest(query=spec, scope=AdminScope(adm0='BRA', adm1=12))

    expanded = request.to_query()
    assert expanded.where == (eq('iso', 'BRA'), eq('adm1', 12))
    assert to_sql(expanded).endswith("WHERE iso = 'BRA' AND adm1 = 12")


def test_precomputed_request_rejects_geometry():
    spec = query('gadm__tcl__iso_change').project(total('umd_tree_cover_loss__ha')).bind_geometry('abc')
    with pytest.raises(ConfigurationError):
        PrecomputedRequest(query=spec).to_query()


def test_limit_is_serialized_and_removable():
    spec = query('umd_tree_cover_loss').project(total('area__ha')).with_limit(10)
    assert to_sql(spec).endswith('LIMIT 10')
    assert 'LIMIT' not in to_sql(spec.with_limit(None))

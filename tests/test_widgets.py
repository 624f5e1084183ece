"""Tests for widget request builders and shape callbacks."""

import pandas as pd
import pytest

from models.data_models import DataSource, LocationContext
from models.errors import ConfigurationError
from models.query import PrecomputedRequest, QuerySpec, eq, gte
from widgets import tree_cover, tree_loss_primary
from widgets.common import indicator_predicates, summary_table

LOSS_PARAMS = {'threshold': 30, 'startYear': 2002, 'endYear': 2004, 'landCategory': None}


def loss_frame(rows):
    return pd.DataFrame(rows, columns=['year', 'loss__ha'])


def test_summary_table_names(brazil, saved_area, protected_area):
    assert summary_table(brazil, 'tcl', 'change') == 'gadm__tcl__iso_change'
    assert summary_table(LocationContext.region('BRA', 1), 'tcl', 'change') == 'gadm__tcl__adm1_change'
    assert summary_table(LocationContext.region('BRA', 1, 2), 'tcl', 'change') == 'gadm__tcl__adm2_change'
    assert summary_table(protected_area, 'tcl', 'change') == 'wdpa_protected_areas__tcl__change'
    assert summary_table(saved_area, 'tcl', 'change') == 'geostore__tcl__change'
    with pytest.raises(ConfigurationError):
        summary_table(LocationContext.use_area('x', geostore='beef'), 'tcl', 'change')


def test_indicator_predicates():
    params = {'forestType': 'ifl', 'landCategory': 'mining'}
    assert indicator_predicates(params) == (
        eq('is__ifl_intact_forest_landscapes_2016', True),
        eq('is__gfw_mining_concessions', True),
    )
    assert indicator_predicates(params, forest_type=None, land_category=None) == ()
    with pytest.raises(ConfigurationError):
        indicator_predicates({'forestType': 'savanna'})


def test_tree_loss_precomputed_requests(brazil):
    requests = tree_loss_primary.build_requests(LOSS_PARAMS, brazil, DataSource.PRECOMPUTED)

    assert list(requests) == ['admin_loss', 'primary_loss', 'extent', 'loss']
    assert all(isinstance(r, PrecomputedRequest) for r in requests.values())
    primary = requests['primary_loss'].query
    assert eq('umd_tree_cover_density_2000__threshold', 30) in primary.where
    assert eq('is__umd_regional_primary_forest_2001', True) in primary.where
    assert primary.group_by == ('umd_tree_cover_loss__year',)


def test_tree_loss_live_requests(draft_area):
    requests = tree_loss_primary.build_requests(LOSS_PARAMS, draft_area, DataSource.ON_THE_FLY)

    assert all(isinstance(r, QuerySpec) for r in requests.values())
    assert all(r.geometry.id == 'a1b2c3' for r in requests.values())
    assert gte('umd_tree_cover_density_2000__threshold', 30) in requests['loss'].where


def test_tree_loss_shape_filters_years():
    frames = {
        'primary_loss': loss_frame([(2001, 9.0), (2002, 1.0), (2003, 2.0), (2005, 9.0)]),
        'loss': loss_frame([(2002, 4.0), (2003, 4.0), (2004, 2.0)]),
        'admin_loss': loss_frame([(2002, 5.0)]),
        'extent': pd.DataFrame({'extent__ha': [100.0]}),
    }

    data = tree_loss_primary.shape(frames, LOSS_PARAMS)

    assert data['total_primary_loss'] == pytest.approx(3.0)
    assert data['total_loss'] == pytest.approx(10.0)
    assert data['percentage'] == pytest.approx(30.0)
    assert data['extent_remaining'] == pytest.approx(97.0)
    assert [row['year'] for row in data['primary_loss']] == [2002, 2003]
    assert data['settings']['yearsRange'] == [2002, 2003, 2004]
    assert data['options']['years'] == list(range(2001, 2006))


def test_tree_loss_shape_without_loss():
    empty = loss_frame([])
    frames = {'primary_loss': empty, 'loss': empty, 'admin_loss': empty, 'extent': pd.DataFrame({'extent__ha': []})}

    data = tree_loss_primary.shape(frames, LOSS_PARAMS)

    assert data['percentage'] == 0.0
    assert data['options']['years'] == [2002, 2003, 2004]


def test_tree_cover_tropical_requests(brazil):
    params = {'threshold': 30, 'decile': 50, 'extentYear': 2020}
    requests = tree_cover.build_requests(params, brazil, DataSource.PRECOMPUTED)

    cover = requests['cover'].query
    assert cover.table == 'gadm__ttc__iso_summary'
    assert gte('wri_tropical_tree_cover__decile', 50) in cover.where
    assert eq('is__gfw_planted_forests', True) in requests['plantations'].query.where


def test_tree_cover_shapes():
    params = {'extentYear': 2000}
    precomputed = tree_cover.shape({
        'cover': pd.DataFrame({'extent__ha': [40.0], 'total_area__ha': [200.0]}),
        'admin': pd.DataFrame({'extent__ha': [50.0], 'total_area__ha': [200.0]}),
        'plantations': pd.DataFrame({'extent__ha': [10.0], 'total_area__ha': [200.0]}),
    }, params)
    live = tree_cover.shape({
        'area': pd.DataFrame({'total_area__ha': [80.0]}),
        'extent': pd.DataFrame({'extent__ha': [20.0]}),
    }, params)

    assert precomputed['percentage'] == pytest.approx(20.0)
    assert precomputed['plantations'] == pytest.approx(10.0)
    assert precomputed['non_forest'] == pytest.approx(150.0)
    assert live['cover'] == live['total_cover'] == pytest.approx(20.0)
    assert live['plantations'] == 0.0
    assert live['percentage'] == pytest.approx(25.0)


def test_tree_cover_ignores_undeclared_forest_type(brazil):
    params = {'threshold': 30, 'decile': 30, 'extentYear': 2000, 'forestType': 'ifl', 'landCategory': 'mining'}
    requests = tree_cover.build_requests(params, brazil, DataSource.PRECOMPUTED)

    cover = requests['cover'].query
    assert eq('is__ifl_intact_forest_landscapes_2016', True) not in cover.where
    assert eq('is__gfw_mining_concessions', True) in cover.where
    assert eq('is__ifl_intact_forest_landscapes_2016', True) not in requests['plantations'].query.where

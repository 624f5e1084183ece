"""Tests for download descriptor construction."""

import pytest

from models.data_models import DataSource, LocationType, WidgetDescriptor
from models.errors import ConfigurationError
from models.query import query, total
from services.download_builder import DownloadBuilder
from services.parameter_resolver import ParameterResolver
from widgets import INTEGRATED_ALERTS, TREE_LOSS_PRIMARY


def test_draft_area_alert_download(fake_client, draft_area, metadata):
    params = ParameterResolver().resolve(INTEGRATED_ALERTS, draft_area, {}, metadata)
    downloads = DownloadBuilder(fake_client).build(INTEGRATED_ALERTS, draft_area, params.values)

    assert len(downloads) == 1
    download = downloads[0]
    assert download.source == DataSource.ON_THE_FLY
    assert download.table == 'gfw_integrated_alerts'
    assert download.geometry.id == 'a1b2c3'
    assert download.sql.startswith('SELECT gfw_integrated_alerts__date AS alert__date, ')
    assert 'GROUP BY gfw_integrated_alerts__date, gfw_integrated_alerts__confidence' in download.sql
    assert download.url.startswith('https://data-api.test/dataset/gfw_integrated_alerts/latest/download/csv')
    assert fake_client.calls == []


def test_precomputed_download_uses_same_requests_as_reads(fake_client, brazil, metadata):
    params = ParameterResolver().resolve(TREE_LOSS_PRIMARY, brazil, {'landCategory': 'kba'}, metadata)
    downloads = DownloadBuilder(fake_client).build(TREE_LOSS_PRIMARY, brazil, params.values)

    assert [d.name for d in downloads] == ['admin_loss', 'primary_loss', 'extent', 'loss']
    assert all(d.source == DataSource.PRECOMPUTED for d in downloads)
    assert all("iso = 'BRA'" in d.sql for d in downloads)
    assert all('LIMIT' not in d.sql for d in downloads)
    assert 'is__birdlife_key_biodiversity_areas = true' in downloads[3].sql
    assert 'is__birdlife_key_biodiversity_areas' not in downloads[0].sql


def test_limit_is_stripped(fake_client, draft_area):
    def build_requests(params, location, source, download=False):
        spec = query('umd_tree_cover_loss').project(total('area__ha')).with_limit(100)
        return {'loss': spec.bind_geometry(location.geostore)}

    descriptor = _descriptor_with(build_requests)
    downloads = DownloadBuilder(fake_client).build(descriptor, draft_area, {})
    assert 'LIMIT' not in downloads[0].sql


def test_wrong_request_kind_is_rejected(fake_client, brazil):
    def build_requests(params, location, source, download=False):
        return {'loss': query('umd_tree_cover_loss').project(total('area__ha'))}

    descriptor = _descriptor_with(build_requests, precomputed_scopes=('adm0',))
    with pytest.raises(ConfigurationError):
        DownloadBuilder(fake_client).build(descriptor, brazil, {})


def test_missing_geometry_is_rejected(fake_client, draft_area):
    def build_requests(params, location, source, download=False):
        return {'loss': query('umd_tree_cover_loss').project(total('area__ha'))}

    with pytest.raises(ConfigurationError):
        DownloadBuilder(fake_client).build(_descriptor_with(build_requests), draft_area, {})


def _descriptor_with(build_requests, **overrides):
    fields = dict(
        widget='testWidget',
        build_requests=build_requests,
        shape=lambda frames, params: {},
        types=tuple(LocationType),
    )
    fields.update(overrides)
    return WidgetDescriptor(**fields)

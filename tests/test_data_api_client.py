"""Tests for the Data API client against an in-memory session."""

from urllib.parse import parse_qs, urlparse

import pytest
import requests

from models.errors import ExecutionError, NormalizationError
from models.query import AdminScope, PrecomputedRequest, column, count, query, total
from services.data_api_client import DataAPIClient
from utils.sql import to_sql


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=None):
        self.payload = payload
        self.status_code = status_code
        self.text = text

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)

    def json(self):
        if self.text is not None:
            raise ValueError("not JSON")
        return self.payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.headers = {}
        self.response = response
        self.error = error
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, dict(params or {}), timeout))
        if self.error is not None:
            raise self.error
        return self.response


def make_client(**session_kwargs):
    session = FakeSession(**session_kwargs)
    client = DataAPIClient(base_url='https://data-api.test/', api_key='secret', timeout=7, session=session)
    return client, session


def test_query_sends_sql_and_geometry():
    client, session = make_client(response=FakeResponse({'data': [
        {'confidence': 'high', 'alert__count': 4, 'extra': 'dropped'},
        {'confidence': 'nominal'},
    ]}))
    spec = (
        query('gfw_integrated_alerts')
        .project(column('gfw_integrated_alerts__confidence', alias='confidence'), count(alias='alert__count'))
        .group('gfw_integrated_alerts__confidence')
        .bind_geometry('abc123')
    )

    rows = client.query(spec)

    url, params, timeout = session.requests[0]
    assert url == 'https://data-api.test/dataset/gfw_integrated_alerts/latest/query/json'
    assert params == {'sql': to_sql(spec), 'geostore_id': 'abc123', 'geostore_origin': 'rw'}
    assert timeout == 7
    assert session.headers['x-api-key'] == 'secret'
    assert rows == [
        {'confidence': 'high', 'alert__count': 4},
        {'confidence': 'nominal', 'alert__count': None},
    ]


def test_precomputed_read_has_scope_and_no_geometry():
    client, session = make_client(response=FakeResponse({'data': []}))
    spec = query('gadm__tcl__iso_summary').project(total('umd_tree_cover_extent_2000__ha'))

    assert client.fetch_aggregates(PrecomputedRequest(query=spec, scope=AdminScope(adm0='BRA'))) == []

    _, params, _ = session.requests[0]
    assert 'geostore_id' not in params
    assert params['sql'].endswith("WHERE iso = 'BRA'")


def test_http_error_becomes_execution_error():
    client, _ = make_client(response=FakeResponse(status_code=503))
    with pytest.raises(ExecutionError) as excinfo:
        client.query(query('umd_tree_cover_loss').project(total('area__ha')))
    assert excinfo.value.status_code == 503


def test_transport_failure_becomes_execution_error():
    client, _ = make_client(error=requests.ConnectionError('refused'))
    with pytest.raises(ExecutionError):
        client.query(query('umd_tree_cover_loss').project(total('area__ha')))


def test_malformed_payload_becomes_normalization_error():
    client, _ = make_client(response=FakeResponse(text='<html>'))
    with pytest.raises(NormalizationError):
        client.query(query('umd_tree_cover_loss').project(total('area__ha')))

    client, _ = make_client(response=FakeResponse({'data': 'rows'}))
    with pytest.raises(NormalizationError):
        client.query(query('umd_tree_cover_loss').project(total('area__ha')))


def test_download_url_is_built_without_a_request():
    client, session = make_client()
    spec = query('umd_tree_cover_loss').project(total('area__ha')).bind_geometry('abc123')

    url = client.download_url(spec)

    parsed = urlparse(url)
    assert parsed.path == '/dataset/umd_tree_cover_loss/latest/download/csv'
    assert parse_qs(parsed.query) == {'sql': [to_sql(spec)], 'geostore_id': ['abc123'], 'geostore_origin': ['rw']}
    assert session.requests == []


def test_dataset_metadata():
    payload = {'data': {'metadata': {'content_date_range': {'start_date': '2015-01-01', 'end_date': '2025-03-01'}}}}
    client, session = make_client(response=FakeResponse(payload))

    document = client.get_dataset_metadata('gfw_integrated_alerts')

    assert session.requests[0][0] == 'https://data-api.test/dataset/gfw_integrated_alerts/latest'
    assert document['metadata']['content_date_range']['end_date'] == '2025-03-01'

"""
Shared fixtures: an in-memory Data API client, reference metadata and a few
locations. No test touches the network.
"""

import threading

import pytest

from config.constants import DEFAULT_DATASET_BOUNDS
from models.data_models import AreaStatus, LocationContext
from services.metadata_service import MetadataService
from services.widget_service import WidgetDataService
from utils.sql import to_sql
from widgets.registry import WidgetRegistry


class FakeDataAPIClient:
    """
    Stand-in for DataAPIClient.

    `responses` maps a table name to rows, to an exception to raise, or to a
    callable taking the executed QuerySpec and returning either.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.queries = []
        self.aggregate_reads = []
        self._lock = threading.Lock()

    @property
    def calls(self):
        return self.queries + self.aggregate_reads

    def _respond(self, spec):
        response = self.responses.get(spec.table, [])
        if callable(response):
            response = response(spec)
        if isinstance(response, Exception):
            raise response
        return list(response)

    def query(self, spec):
        with self._lock:
            self.queries.append(spec)
        return self._respond(spec)

    def fetch_aggregates(self, request):
        spec = request.to_query()
        with self._lock:
            self.aggregate_reads.append(spec)
        return self._respond(spec)

    def download_url(self, spec, file_format='csv'):
        return f"https://data-api.test/dataset/{spec.table}/latest/download/{file_format}?sql={to_sql(spec)}"


@pytest.fixture
def fake_client():
    return FakeDataAPIClient()


@pytest.fixture
def metadata_service():
    return MetadataService(static_bounds=DEFAULT_DATASET_BOUNDS)


@pytest.fixture
def metadata(metadata_service):
    return metadata_service.get_metadata()


@pytest.fixture
def registry():
    return WidgetRegistry()


@pytest.fixture
def service(registry, fake_client, metadata_service):
    service = WidgetDataService(registry, fake_client, metadata_service, max_workers=4)
    yield service
    service.shutdown()


@pytest.fixture
def brazil():
    return LocationContext.country('BRA')


@pytest.fixture
def draft_area():
    return LocationContext.user_area('a1b2c3')


@pytest.fixture
def saved_area():
    return LocationContext.user_area('a1b2c3', status=AreaStatus.SAVED, area_id='area-1')


@pytest.fixture
def protected_area():
    return LocationContext.protected_area('555', geostore='f00d')

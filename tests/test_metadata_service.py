"""Tests for the global metadata provider."""

from config.constants import DEFAULT_DATASET_BOUNDS
from models.errors import ExecutionError
from services.metadata_service import MetadataService


class FakeMetadataClient:
    def __init__(self, documents):
        self.documents = documents
        self.calls = []

    def get_dataset_metadata(self, dataset):
        self.calls.append(dataset)
        document = self.documents.get(dataset)
        if isinstance(document, Exception):
            raise document
        return document or {}


def test_static_bounds():
    metadata = MetadataService(static_bounds=DEFAULT_DATASET_BOUNDS).get_metadata()

    assert metadata.bounds('GLAD').default_start_date == '2024-07-01'
    assert metadata.bounds('LOSS').max_year == 2023
    assert metadata.bounds('FIRES') is None
    assert metadata.bounds(None) is None


def test_remote_bounds_override_static_ones():
    client = FakeMetadataClient({
        'gfw_integrated_alerts': {'metadata': {'content_date_range': {'start_date': '2015-01-01', 'end_date': '2025-03-01'}}},
        'umd_tree_cover_loss': ExecutionError('unavailable'),
    })
    service = MetadataService(static_bounds=DEFAULT_DATASET_BOUNDS, client=client)

    metadata = service.get_metadata()

    assert metadata.bounds('GLAD').max_date == '2025-03-01'
    assert metadata.bounds('GLAD').default_end_date == '2025-03-01'
    assert metadata.bounds('GLAD').default_start_date == '2024-07-01'
    assert metadata.bounds('LOSS').max_date == '2023-12-31'


def test_metadata_is_cached():
    client = FakeMetadataClient({})
    service = MetadataService(static_bounds=DEFAULT_DATASET_BOUNDS, client=client, cache_duration=60)

    first = service.get_metadata()
    second = service.get_metadata()
    service.get_metadata(force_refresh=True)

    assert first is second
    assert len(client.calls) == 2 * len(service.remote_datasets)

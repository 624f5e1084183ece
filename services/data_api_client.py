"""
Data API client: the query execution and precomputed aggregate boundary.

Both on-the-fly queries against raw datasets and reads of materialized
summary tables go through the Data API query endpoint:

    GET {base_url}/dataset/{table}/{version}/query/json?sql=...

On-the-fly queries additionally pass the geometry binding as
`geostore_id`/`geostore_origin` parameters. Downloads use the sibling
`download/{format}` endpoint and are never executed here.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

import requests

from config.constants import DEFAULT_DATA_API_URL, DEFAULT_DATASET_VERSION, DEFAULT_REQUEST_TIMEOUT
from models.errors import ExecutionError, NormalizationError
from models.query import PrecomputedRequest, QuerySpec
from utils.sql import to_sql

# Set up logger
logger = logging.getLogger(__name__)


class DataAPIClient:
    """
    Client for the Data API.

    Attributes:
        base_url (str): Root URL of the Data API
        version (str): Dataset version to query ('latest' by default)
        timeout (float): Request timeout in seconds
    """

    def __init__(
        self,
        base_url: str = DEFAULT_DATA_API_URL,
        version: str = DEFAULT_DATASET_VERSION,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None
    ):
        self.base_url = base_url.rstrip('/')
        self.version = version
        self.timeout = timeout
        self.session = session or requests.Session()
        if api_key:
            self.session.headers['x-api-key'] = api_key

        logger.info(f"Initialized Data API client with base URL: {self.base_url}")

    def dataset_url(self, table: str, endpoint: str) -> str:
        return f"{self.base_url}/dataset/{table}/{self.version}/{endpoint}"

    def _request_params(self, spec: QuerySpec) -> Dict[str, str]:
        params = {'sql': to_sql(spec)}
        if spec.geometry is not None:
            params['geostore_id'] = spec.geometry.id
            params['geostore_origin'] = spec.geometry.origin
        return params

    def _make_request(self, url: str, params: Mapping[str, str]) -> requests.Response:
        """
        Make a GET request, translating transport failures.

        Raises:
            ExecutionError: If the request fails or returns an error status
        """
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            logger.error(f"Data API returned {status} for {url}: {str(e)}")
            raise ExecutionError(f"Data API request to {url} failed: {str(e)}", status_code=status) from e
        except requests.RequestException as e:
            logger.error(f"Error making request to {url}: {str(e)}")
            raise ExecutionError(f"Data API request to {url} failed: {str(e)}") from e

    def _parse_rows(self, response: requests.Response, spec: QuerySpec) -> List[Dict[str, Any]]:
        """Extract rows and key them by the spec's output names."""
        try:
            payload = response.json()
        except ValueError as e:
            raise NormalizationError(f"Data API response for {spec.table} is not JSON") from e

        rows = payload.get('data') if isinstance(payload, dict) else payload
        if rows is None:
            return []
        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            raise NormalizationError(f"Data API response for {spec.table} is not a list of rows")

        names = spec.output_names
        return [{name: row.get(name) for name in names} for row in rows]

    def query(self, spec: QuerySpec) -> List[Dict[str, Any]]:
        """
        Execute a validated query spec in one round trip.

        Args:
            spec: Query to run

        Returns:
            Rows keyed by projection output names; empty list for no rows
        """
        url = self.dataset_url(spec.table, 'query/json')
        logger.debug(f"Querying {spec.table} (geostore={spec.geometry.id if spec.geometry else None})")
        response = self._make_request(url, self._request_params(spec))
        return self._parse_rows(response, spec)

    def fetch_aggregates(self, request: PrecomputedRequest) -> List[Dict[str, Any]]:
        """
        Read a precomputed aggregate table for an administrative/geometry scope.

        Args:
            request: Summary table read with its scope

        Returns:
            Pre-aggregated rows keyed by projection output names
        """
        spec = request.to_query()
        url = self.dataset_url(spec.table, 'query/json')
        logger.debug(f"Reading precomputed table {spec.table}")
        response = self._make_request(url, self._request_params(spec))
        return self._parse_rows(response, spec)

    def download_url(self, spec: QuerySpec, file_format: str = 'csv') -> str:
        """Build (without sending) the download URL for a spec."""
        prepared = requests.Request(
            'GET',
            self.dataset_url(spec.table, f'download/{file_format}'),
            params=self._request_params(spec)
        ).prepare()
        return prepared.url

    def get_dataset_metadata(self, dataset: str) -> Dict[str, Any]:
        """
        Fetch a dataset version's metadata document.

        Returns:
            The `data` object of the response (empty dict if absent)
        """
        url = self.dataset_url(dataset, '').rstrip('/')
        response = self._make_request(url, {})
        try:
            payload = response.json()
        except ValueError as e:
            raise NormalizationError(f"Metadata response for {dataset} is not JSON") from e
        data = payload.get('data') if isinstance(payload, dict) else None
        return data if isinstance(data, dict) else {}

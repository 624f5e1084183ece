"""
On-the-fly query construction and execution.

Specs are composed with the immutable QuerySpec methods (`project`,
`filter`, `group`, `bind_geometry`) starting from `QueryBuilder.table()`;
`QueryBuilder.execute()` validates and sends a spec through the execution
boundary. Confidence aggregation over alert rows lives here too.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from config.constants import CONFIDENCE_BUCKETS
from models.data_models import ConfidenceBreakdown, DataSource, SubRequest
from models.errors import ConfigurationError
from models.query import (  # noqa: F401  re-exported composition helpers
    PrecomputedRequest,
    QuerySpec,
    column,
    count,
    eq,
    gt,
    gte,
    is_in,
    lt,
    lte,
    neq,
    query,
    total,
)

logger = logging.getLogger(__name__)


class QueryBuilder:
    """
    Builds and executes on-the-fly queries.

    Attributes:
        executor: Object exposing `query(spec) -> rows` (the Data API client)
    """

    def __init__(self, executor):
        self.executor = executor

    @staticmethod
    def table(name: str) -> QuerySpec:
        """Start an empty spec against a table."""
        return query(name)

    def execute(self, spec: QuerySpec, require_geometry: bool = False) -> List[Dict[str, Any]]:
        """
        Validate and run a spec in a single round trip.

        Args:
            spec: Query to run
            require_geometry: Whether the location is geometry-backed

        Returns:
            Rows keyed by the projection output names. An empty list is a
            valid all-zero outcome.

        Raises:
            ConfigurationError: Before any network call, if the spec is malformed
            ExecutionError: If the transport fails
        """
        spec.validate(require_geometry=require_geometry)
        rows = self.executor.query(spec)
        logger.debug(f"Query on {spec.table} returned {len(rows)} rows")
        return rows


def confidence_totals(
    rows: Iterable[Mapping[str, Any]],
    field: str,
    count_key: str = 'count',
    confirmed_only: bool = False
) -> ConfidenceBreakdown:
    """
    Sum alert counts per confidence bucket.

    Default mode totals nominal + high + highest; confirmed-only mode totals
    high + highest. Buckets that are absent from the rows count as zero.

    Args:
        rows: Rows carrying a confidence tag and a count
        field: Name of the confidence column
        count_key: Name of the count column
        confirmed_only: Whether nominal alerts are excluded from the total

    Returns:
        ConfidenceBreakdown
    """
    buckets = dict.fromkeys(CONFIDENCE_BUCKETS, 0)
    for row in rows:
        bucket = row.get(field)
        if bucket in buckets:
            buckets[bucket] += int(row.get(count_key) or 0)

    counted = ('high', 'highest') if confirmed_only else CONFIDENCE_BUCKETS
    return ConfidenceBreakdown(
        nominal=buckets['nominal'],
        high=buckets['high'],
        highest=buckets['highest'],
        total=sum(buckets[name] for name in counted),
        confirmed_only=confirmed_only,
    )


def prepare_requests(
    widget: str,
    source: DataSource,
    requests: Mapping[str, SubRequest],
    require_geometry: bool = False,
    geostore_origin: Optional[str] = None
) -> Dict[str, SubRequest]:
    """
    Check and validate the sub-requests of one fetch before anything runs.

    Every sub-request must belong to `source`: precomputed reads for a
    precomputed fetch, query specs for an on-the-fly one. Geometry bindings
    are re-tagged with `geostore_origin` when given.

    Raises:
        ConfigurationError: If a sub-request is of the wrong kind or invalid
    """
    prepared: Dict[str, SubRequest] = {}
    for name, request in requests.items():
        if isinstance(request, PrecomputedRequest):
            if source != DataSource.PRECOMPUTED:
                raise ConfigurationError(f"{widget}: '{name}' is precomputed in an on-the-fly fetch")
            request.to_query().validate()
        elif isinstance(request, QuerySpec):
            if source != DataSource.ON_THE_FLY:
                raise ConfigurationError(f"{widget}: '{name}' is on-the-fly in a precomputed fetch")
            if geostore_origin and request.geometry is not None:
                request = request.bind_geometry(request.geometry.id, geostore_origin)
            request = request.validate(require_geometry=require_geometry)
        else:
            raise ConfigurationError(f"{widget}: '{name}' is not a query ({type(request).__name__})")
        prepared[name] = request

    if not prepared:
        raise ConfigurationError(f"{widget}: no sub-requests built")
    return prepared

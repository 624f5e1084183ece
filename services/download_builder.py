"""
Download descriptor construction.

Downloads mirror the read path: the same routing decision and the same
`build_requests` callback, with `download=True` and no row limit. Nothing
is executed here.
"""

import logging
from typing import Any, List, Mapping, Optional

from models.data_models import DataSource, DownloadDescriptor, LocationContext, WidgetDescriptor
from models.query import PrecomputedRequest
from services.fetch_router import route
from services.query_builder import prepare_requests
from utils.sql import to_sql

logger = logging.getLogger(__name__)


class DownloadBuilder:
    """
    Produces deferred export descriptors.

    Attributes:
        client: Data API client, used only to format download URLs
        geostore_origin (str): Origin tag for geometry bindings, if overridden
    """

    def __init__(self, client, geostore_origin: Optional[str] = None):
        self.client = client
        self.geostore_origin = geostore_origin

    def build(
        self,
        descriptor: WidgetDescriptor,
        location: LocationContext,
        params: Mapping[str, Any]
    ) -> List[DownloadDescriptor]:
        """
        Build export descriptors for a resolved parameter bag.

        Args:
            descriptor: Widget descriptor
            location: Current location
            params: Resolved parameter values (same bag as the live fetch)

        Returns:
            One descriptor per sub-request, in request order

        Raises:
            ConfigurationError: If a sub-request is malformed
        """
        source = route(descriptor, location, params)
        requests = prepare_requests(
            descriptor.widget,
            source,
            descriptor.build_requests(params, location, source, True),
            require_geometry=source == DataSource.ON_THE_FLY and location.is_geometry_backed,
            geostore_origin=self.geostore_origin,
        )

        downloads = []
        for name, request in requests.items():
            spec = request.to_query() if isinstance(request, PrecomputedRequest) else request
            spec = spec.with_limit(None)
            downloads.append(DownloadDescriptor(
                name=name,
                source=source,
                table=spec.table,
                sql=to_sql(spec),
                url=self.client.download_url(spec),
                geometry=spec.geometry,
            ))

        logger.debug(f"Built {len(downloads)} download descriptors for {descriptor.widget}")
        return downloads

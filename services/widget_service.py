"""
Widget data service.

Runs the fetch pipeline of every widget shown for the current location:

    resolve parameters -> route -> build sub-requests -> execute in parallel
    -> normalize -> apply to the widget's FetchState

Each pipeline runs on a worker thread and touches only its own FetchState.
Responses are stamped with the generation current when the fetch was
issued and are dropped if a newer fetch has been issued since.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Any, Dict, List, Mapping, Optional

from config.constants import DEFAULT_MAX_WORKERS
from models.data_models import (
    AnalysisResult,
    DataSource,
    DownloadDescriptor,
    FetchState,
    FetchStatus,
    LocationContext,
    ResolvedParams,
    SubRequest,
    WidgetDescriptor,
)
from models.errors import ConfigurationError, ExecutionError, NormalizationError
from models.query import PrecomputedRequest
from services.download_builder import DownloadBuilder
from services.fetch_router import route
from services.metadata_service import MetadataService
from services.parameter_resolver import ParameterResolver
from services.query_builder import QueryBuilder, prepare_requests
from services.refetch_invalidator import changed_keys, is_stale
from services.result_normalizer import ResultNormalizer
from widgets.registry import WidgetRegistry

# Set up logger
logger = logging.getLogger(__name__)


class WidgetDataService:
    """
    Orchestrates widget fetches for one location at a time.

    Attributes:
        registry: Widget descriptor registry
        client: Data API client (query and precomputed boundary)
        metadata_service: Global metadata provider
        location: Current location, replaced wholesale by `set_location`
        context (dict): Explicit page context folded into every parameter bag
    """

    def __init__(
        self,
        registry: WidgetRegistry,
        client,
        metadata_service: Optional[MetadataService] = None,
        resolver: Optional[ParameterResolver] = None,
        normalizer: Optional[ResultNormalizer] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        geostore_origin: Optional[str] = None,
        context: Optional[Mapping[str, Any]] = None
    ):
        self.registry = registry
        self.client = client
        self.metadata_service = metadata_service or MetadataService()
        self.resolver = resolver or ParameterResolver()
        self.normalizer = normalizer or ResultNormalizer()
        self.query_builder = QueryBuilder(client)
        self.download_builder = DownloadBuilder(client, geostore_origin=geostore_origin)
        self.geostore_origin = geostore_origin
        self.context = dict(context or {})

        self.location: Optional[LocationContext] = None
        self._states: Dict[str, FetchState] = {}
        self._settings: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

        # pipelines and their sub-requests run on separate pools so a
        # pipeline waiting on its sub-requests never starves them
        self._pipelines = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='widget')
        self._requests = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='widget-request')

        logger.info(f"Initialized widget data service with {len(registry)} widgets, {max_workers} workers")

    # Collaborator surface

    def set_location(self, location: LocationContext) -> None:
        """
        Replace the current location.

        All FetchStates are discarded; late responses for them have nowhere
        to land.
        """
        with self._lock:
            self.location = location
            self._states.clear()
        logger.info(f"Location set to {location.type.value}")

    def set_context(self, **context) -> None:
        """Update explicit page context flags (e.g. is_map_page=True)."""
        with self._lock:
            self.context.update(context)

    def state(self, widget: str) -> FetchState:
        """FetchState of a widget, created on first use."""
        self.registry.get(widget)
        with self._lock:
            if widget not in self._states:
                self._states[widget] = FetchState(widget)
            return self._states[widget]

    def resolve(self, widget: str, settings: Optional[Mapping[str, Any]] = None) -> ResolvedParams:
        """Resolve the parameter bag of a widget for the current location."""
        descriptor = self.registry.get(widget)
        location = self._require_location()
        with self._lock:
            merged = dict(self._settings.get(widget, {}))
            if settings:
                merged.update(settings)
            self._settings[widget] = merged
            context = dict(self.context)
        return self.resolver.resolve(
            descriptor,
            location,
            merged,
            self.metadata_service.get_metadata(),
            context,
        )

    def update_settings(
        self,
        widget: str,
        settings: Mapping[str, Any],
        fetch: bool = True
    ) -> Optional['Future[AnalysisResult]']:
        """
        Apply a settings change from the settings UI.

        A change to a refetch key marks the cached result stale and, when
        `fetch` is set, issues a new fetch. Any other change is only
        recorded.

        Returns:
            The Future of the new fetch, or None if none was issued
        """
        descriptor = self.registry.get(widget)
        state = self.state(widget)
        params = self.resolve(widget, settings)

        if not is_stale(state.params, params, descriptor.refetch_keys):
            state.observe(params)
            return None

        logger.debug(f"{widget} invalidated by {sorted(changed_keys(state.params, params, descriptor.refetch_keys))}")
        state.invalidate(params)
        if not fetch:
            return None
        return self._issue(descriptor, state, params)

    def get_data(
        self,
        widget: str,
        settings: Optional[Mapping[str, Any]] = None,
        force: bool = False
    ) -> Optional['Future[AnalysisResult]']:
        """
        Fetch the data of a widget.

        Only a change to one of the widget's refetch keys since the last
        fetch issues a new request. Otherwise the outcome of that fetch is
        reused: a loaded result (re-shaped if other parameters changed), the
        in-flight Future, or the recorded failure. Failed fetches are never
        retried here; use `retry` or `force`.

        Args:
            widget: Widget id
            settings: Settings to merge into the widget's current settings
            force: Re-issue even if the last fetch still applies

        Returns:
            Future resolving to an AnalysisResult, or None while pending keys
            are unresolved

        Raises:
            ConfigurationError: If the widget or its queries are malformed
        """
        descriptor = self.registry.get(widget)
        state = self.state(widget)
        params = self.resolve(widget, settings)

        if not params.ready:
            state.observe(params)
            return None

        if force or is_stale(state.fetched_params, params, descriptor.refetch_keys):
            return self._issue(descriptor, state, params)

        if state.status == FetchStatus.PENDING and state.future is not None:
            if state.fingerprint == params.fingerprint:
                logger.debug(f"Joining in-flight fetch of {widget}")
                return state.future
            return self._reshape_when_done(descriptor, state, params, state.future)

        if state.status == FetchStatus.ERROR:
            logger.debug(f"Returning recorded failure of {widget}")
            return self._completed(state)

        if state.status == FetchStatus.LOADED:
            if state.fingerprint != params.fingerprint:
                self._reshape(descriptor, state, params)
            else:
                logger.debug(f"Returning cached result for {widget}")
            return self._completed(state)

        return self._issue(descriptor, state, params)

    def retry(self, widget: str) -> Optional['Future[AnalysisResult]']:
        """Re-issue the last fetch of a widget (user-triggered)."""
        return self.get_data(widget, force=True)

    def get_data_url(self, widget: str, settings: Optional[Mapping[str, Any]] = None) -> List[DownloadDescriptor]:
        """
        Download descriptors for a widget; nothing is executed.

        Returns:
            An empty list while pending keys are unresolved
        """
        descriptor = self.registry.get(widget)
        params = self.resolve(widget, settings)
        if not params.ready:
            return []
        return self.download_builder.build(descriptor, self._require_location(), params.values)

    def shutdown(self, wait: bool = True) -> None:
        self._pipelines.shutdown(wait=wait)
        self._requests.shutdown(wait=wait)

    # Pipeline

    def _require_location(self) -> LocationContext:
        if self.location is None:
            raise ConfigurationError("No location set")
        return self.location

    def _completed(self, state: FetchState) -> 'Future[AnalysisResult]':
        """A done Future carrying the recorded outcome of the last fetch."""
        future: Future = Future()
        if state.status == FetchStatus.ERROR and not isinstance(state.error, NormalizationError):
            future.set_exception(state.error)
        else:
            future.set_result(state.result)
        return future

    def _reshape(self, descriptor: WidgetDescriptor, state: FetchState, params: ResolvedParams) -> None:
        """Re-normalize the kept responses of a loaded fetch for a new parameter bag."""
        generation = state.generation
        if state.responses is None:
            return
        bounds = self.metadata_service.get_metadata().bounds(descriptor.metadata_key)
        try:
            result = self.normalizer.normalize(
                descriptor, state.responses, params.values, state.source, state.requests, bounds
            )
        except NormalizationError as e:
            logger.error(f"Could not re-shape {descriptor.widget}: {str(e)}")
            state.fail(generation, e, AnalysisResult.empty(descriptor.widget))
            return
        if state.reshape(generation, params, result):
            logger.debug(f"Re-shaped {descriptor.widget} without a request")

    def _reshape_when_done(
        self,
        descriptor: WidgetDescriptor,
        state: FetchState,
        params: ResolvedParams,
        pending: 'Future[AnalysisResult]'
    ) -> 'Future[AnalysisResult]':
        """Follow an in-flight fetch and re-shape its result for `params`."""
        follower: Future = Future()

        def _done(done: 'Future[AnalysisResult]') -> None:
            try:
                done.result()
                if state.status == FetchStatus.LOADED and state.fingerprint != params.fingerprint:
                    self._reshape(descriptor, state, params)
                follower.set_result(state.result)
            except Exception as e:
                follower.set_exception(e)

        pending.add_done_callback(_done)
        return follower

    def _issue(self, descriptor: WidgetDescriptor, state: FetchState, params: ResolvedParams) -> 'Future[AnalysisResult]':
        location = self._require_location()
        source = route(descriptor, location, params.values)
        require_geometry = source == DataSource.ON_THE_FLY and location.is_geometry_backed

        # malformed requests fail here, before any network call
        requests = prepare_requests(
            descriptor.widget,
            source,
            descriptor.build_requests(params.values, location, source, False),
            require_geometry=require_geometry,
            geostore_origin=self.geostore_origin,
        )

        # recorded before the pipeline starts; later calls for the same bag join it
        future: Future = Future()
        generation = state.begin(params, source, requests, future)
        logger.info(f"Fetching {descriptor.widget} (generation {generation}, {source.value}, {len(requests)} requests)")
        self._pipelines.submit(
            self._settle, future, descriptor, state, generation, params, source, requests, require_geometry
        )
        return future

    def _settle(self, future: Future, *args) -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(self._run(*args))
        except Exception as e:
            future.set_exception(e)

    def _run(
        self,
        descriptor: WidgetDescriptor,
        state: FetchState,
        generation: int,
        params: ResolvedParams,
        source: DataSource,
        requests: Mapping[str, SubRequest],
        require_geometry: bool
    ) -> AnalysisResult:
        widget = descriptor.widget
        try:
            responses = self._fetch_all(requests, require_geometry)
            bounds = self.metadata_service.get_metadata().bounds(descriptor.metadata_key)
            result = self.normalizer.normalize(descriptor, responses, params.values, source, requests, bounds)
        except ExecutionError as e:
            logger.error(f"Fetch of {widget} failed: {str(e)}")
            if not state.fail(generation, e):
                logger.debug(f"Discarded stale failure for {widget} (generation {generation})")
            raise
        except NormalizationError as e:
            logger.error(f"Could not normalize {widget} response: {str(e)}")
            empty = AnalysisResult.empty(widget)
            if not state.fail(generation, e, empty):
                logger.debug(f"Discarded stale failure for {widget} (generation {generation})")
            return empty
        except Exception as e:
            logger.error(f"Unexpected failure while fetching {widget}: {str(e)}")
            state.fail(generation, e)
            raise

        if state.resolve(generation, result, responses):
            logger.info(f"Loaded {widget} (generation {generation})")
        else:
            logger.debug(f"Discarded stale response for {widget} (generation {generation})")
        return result

    def _fetch_all(self, requests: Mapping[str, SubRequest], require_geometry: bool) -> Dict[str, Any]:
        """Run all sub-requests in parallel and wait for every one of them."""
        future_to_name = {
            self._requests.submit(self._fetch_one, request, require_geometry): name
            for name, request in requests.items()
        }
        responses = {}
        for future in as_completed(future_to_name):
            responses[future_to_name[future]] = future.result()
        return {name: responses[name] for name in requests}

    def _fetch_one(self, request: SubRequest, require_geometry: bool):
        if isinstance(request, PrecomputedRequest):
            return self.client.fetch_aggregates(request)
        return self.query_builder.execute(request, require_geometry=require_geometry)

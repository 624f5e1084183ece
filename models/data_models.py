"""
Data models for the forest widget data engine.

This module provides the data classes shared by the resolver, router, query
builder, normalizer and widget service: locations, widget descriptors,
resolved parameter bags, analysis results and per-widget fetch state.
"""

import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

import pandas as pd

from models.errors import ConfigurationError
from models.query import GeometryBinding, PrecomputedRequest, QuerySpec


class LocationType(str, Enum):
    """Kinds of location a widget can be shown for."""

    GLOBAL = 'global'
    COUNTRY = 'country'
    REGION = 'region'
    PROTECTED_AREA = 'wdpa'
    USER_AREA = 'aoi'
    USE_AREA = 'use'


class AreaStatus(str, Enum):
    """Persistence status of a user-drawn area."""

    DRAFT = 'draft'
    SAVED = 'saved'


class DataSource(str, Enum):
    PRECOMPUTED = 'precomputed'
    ON_THE_FLY = 'onTheFly'


class FetchStatus(str, Enum):
    IDLE = 'idle'
    PENDING = 'pending'
    LOADED = 'loaded'
    ERROR = 'error'


GEOMETRY_BACKED_TYPES = frozenset({
    LocationType.PROTECTED_AREA,
    LocationType.USER_AREA,
    LocationType.USE_AREA,
})


@dataclass(frozen=True)
class LocationContext:
    """
    Where a widget is being shown.

    Replaced wholesale on navigation, never mutated.

    Attributes:
        type: Location variant
        adm0: ISO3 country code
        adm1: First-level administrative id
        adm2: Second-level administrative id
        geostore: Geostore id/hash for geometry-backed locations
        area_id: WDPA id, use-area id or user-area id
        status: Persistence status, user-areas only
    """

    type: LocationType
    adm0: Optional[str] = None
    adm1: Optional[int] = None
    adm2: Optional[int] = None
    geostore: Optional[str] = None
    area_id: Optional[str] = None
    status: Optional[AreaStatus] = None

    def __post_init__(self):
        object.__setattr__(self, 'type', LocationType(self.type))
        if self.status is not None:
            object.__setattr__(self, 'status', AreaStatus(self.status))

        if self.adm2 is not None and self.adm1 is None:
            raise ConfigurationError("adm2 given without adm1")
        if self.adm1 is not None and not self.adm0:
            raise ConfigurationError("adm1 given without adm0")

        if self.type == LocationType.GLOBAL and self.adm0:
            raise ConfigurationError("Global location cannot carry an administrative path")
        if self.type == LocationType.COUNTRY and (not self.adm0 or self.adm1 is not None):
            raise ConfigurationError("Country location needs adm0 and nothing deeper")
        if self.type == LocationType.REGION and self.adm1 is None:
            raise ConfigurationError("Region location needs adm0 and adm1")
        if self.type in GEOMETRY_BACKED_TYPES and not self.geostore:
            raise ConfigurationError(f"{self.type.value} location needs a geostore")
        if self.type in (LocationType.PROTECTED_AREA, LocationType.USE_AREA) and not self.area_id:
            raise ConfigurationError(f"{self.type.value} location needs an area id")

        if self.type == LocationType.USER_AREA and self.status is None:
            object.__setattr__(self, 'status', AreaStatus.DRAFT)
        elif self.type != LocationType.USER_AREA and self.status is not None:
            raise ConfigurationError("Only user areas carry a persistence status")

    @classmethod
    def global_(cls) -> 'LocationContext':
        return cls(type=LocationType.GLOBAL)

    @classmethod
    def country(cls, iso: str, geostore: Optional[str] = None) -> 'LocationContext':
        return cls(type=LocationType.COUNTRY, adm0=iso, geostore=geostore)

    @classmethod
    def region(cls, iso: str, adm1: int, adm2: Optional[int] = None,
               geostore: Optional[str] = None) -> 'LocationContext':
        return cls(type=LocationType.REGION, adm0=iso, adm1=adm1, adm2=adm2, geostore=geostore)

    @classmethod
    def protected_area(cls, wdpa_id: str, geostore: str) -> 'LocationContext':
        return cls(type=LocationType.PROTECTED_AREA, area_id=wdpa_id, geostore=geostore)

    @classmethod
    def user_area(cls, geostore: str, status: AreaStatus = AreaStatus.DRAFT,
                  area_id: Optional[str] = None) -> 'LocationContext':
        return cls(type=LocationType.USER_AREA, geostore=geostore, status=status, area_id=area_id)

    @classmethod
    def use_area(cls, area_id: str, geostore: str) -> 'LocationContext':
        return cls(type=LocationType.USE_AREA, area_id=area_id, geostore=geostore)

    @property
    def admin_path(self) -> Tuple[Any, ...]:
        return tuple(level for level in (self.adm0, self.adm1, self.adm2) if level is not None)

    @property
    def is_geometry_backed(self) -> bool:
        return self.type in GEOMETRY_BACKED_TYPES

    @property
    def is_draft(self) -> bool:
        return self.type == LocationType.USER_AREA and self.status == AreaStatus.DRAFT

    @property
    def geometry(self) -> Optional[GeometryBinding]:
        return GeometryBinding(id=self.geostore) if self.geostore else None

    def to_params(self) -> Dict[str, Any]:
        """Location fields as they appear in a resolved parameter bag."""
        return {
            'type': self.type.value,
            'adm0': self.adm0,
            'adm1': self.adm1,
            'adm2': self.adm2,
            'geostore': self.geostore,
            'areaId': self.area_id,
            'status': self.status.value if self.status else None,
        }


@dataclass(frozen=True)
class SettingSpec:
    """One entry of a widget's settings schema."""

    key: str
    kind: str
    label: str = ''
    options: Tuple[Any, ...] = ()
    minimum: Any = None
    maximum: Any = None
    start_key: Optional[str] = None
    end_key: Optional[str] = None
    clearable: bool = False

    KINDS = ('select', 'mini-select', 'datepicker', 'range-select', 'switch')

    def __post_init__(self):
        if self.kind not in self.KINDS:
            raise ConfigurationError(f"Setting {self.key} has unknown kind {self.kind!r}")
        if (self.start_key is None) != (self.end_key is None):
            raise ConfigurationError(f"Range setting {self.key} needs both start_key and end_key")

    @property
    def is_range(self) -> bool:
        return self.start_key is not None

    @property
    def keys(self) -> Tuple[str, ...]:
        return tuple(k for k in (self.key, self.start_key, self.end_key) if k)

    def accepts(self, value: Any) -> bool:
        """Whether a single (non-range) value satisfies the constraints."""
        if value is None:
            return self.clearable
        if self.options and value not in self.options:
            return False
        try:
            if self.minimum is not None and value < self.minimum:
                return False
            if self.maximum is not None and value > self.maximum:
                return False
        except TypeError:
            return False
        return True


SubRequest = Union[QuerySpec, PrecomputedRequest]

# (params, location, source, download) -> named sub-requests
RequestBuilder = Callable[[Mapping[str, Any], LocationContext, DataSource, bool], Dict[str, SubRequest]]

# (frames by request name, params) -> shaped widget data
ShapeFunction = Callable[[Dict[str, pd.DataFrame], Mapping[str, Any]], Dict[str, Any]]


def _freeze(mapping: Optional[Mapping]) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True, eq=False)
class WidgetDescriptor:
    """
    Static description of a widget: data shape only.

    Attributes:
        widget: Widget identifier
        title: Title templates keyed by context
        types: Supported location types
        admins: Supported administrative depths ('global', 'adm0', 'adm1', 'adm2')
        settings_config: Ordered settings schema
        settings: Widget-declared default settings
        pending_keys: Keys that must resolve before any fetch
        refetch_keys: Keys whose change invalidates a cached result
        datasets: Backing dataset/layer ids (opaque)
        sentences: Sentence templates keyed by data-shape scenario
        whitelists: Eligibility whitelists (e.g. {'adm0': (...)})
        precomputed_scopes: Location scopes with a materialized aggregate
        live_types: Location types that always require live computation
        metadata_key: Global metadata dataset used for date defaults and bounds
        metadata_defaults: Parameter key -> DatasetBounds attribute
        units: Column -> 'count' or 'ha'
        confidence_field: Column carrying the confidence bucket, if any
        date_keys: Parameter keys of the served date range
        build_requests: Builds the named sub-requests for one data source
        shape: Pure merge of normalized frames into widget data
    """

    widget: str
    build_requests: RequestBuilder
    shape: ShapeFunction
    title: Mapping[str, str] = field(default_factory=dict)
    types: FrozenSet[LocationType] = frozenset()
    admins: Tuple[str, ...] = ()
    settings_config: Tuple[SettingSpec, ...] = ()
    settings: Mapping[str, Any] = field(default_factory=dict)
    pending_keys: FrozenSet[str] = frozenset()
    refetch_keys: FrozenSet[str] = frozenset()
    datasets: Tuple[Mapping[str, Any], ...] = ()
    sentences: Mapping[str, str] = field(default_factory=dict)
    whitelists: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    precomputed_scopes: FrozenSet[str] = frozenset()
    live_types: FrozenSet[LocationType] = frozenset()
    metadata_key: Optional[str] = None
    metadata_defaults: Mapping[str, str] = field(default_factory=dict)
    units: Mapping[str, str] = field(default_factory=dict)
    confidence_field: Optional[str] = None
    date_keys: Tuple[str, str] = ('startDate', 'endDate')

    def __post_init__(self):
        for name in ('title', 'settings', 'sentences', 'whitelists', 'metadata_defaults', 'units'):
            object.__setattr__(self, name, _freeze(getattr(self, name)))
        object.__setattr__(self, 'types', frozenset(LocationType(t) for t in self.types))
        object.__setattr__(self, 'live_types', frozenset(LocationType(t) for t in self.live_types))
        object.__setattr__(self, 'pending_keys', frozenset(self.pending_keys))
        object.__setattr__(self, 'refetch_keys', frozenset(self.refetch_keys))
        object.__setattr__(self, 'precomputed_scopes', frozenset(self.precomputed_scopes))

        undeclared = self.pending_keys - self.settings_keys
        if undeclared:
            raise ConfigurationError(
                f"Widget {self.widget} has pending keys outside its settings schema: {sorted(undeclared)}"
            )
        for column_name, unit in self.units.items():
            if unit not in ('count', 'ha'):
                raise ConfigurationError(f"Widget {self.widget}: unknown unit {unit!r} for {column_name}")

    @property
    def settings_keys(self) -> FrozenSet[str]:
        keys = set()
        for spec in self.settings_config:
            keys.update(spec.keys)
        return frozenset(keys)

    def setting(self, key: str) -> Optional[SettingSpec]:
        for spec in self.settings_config:
            if key in spec.keys:
                return spec
        return None


@dataclass(frozen=True)
class DatasetBounds:
    """Date bounds published for a dataset by the global metadata provider."""

    min_date: Optional[str] = None
    max_date: Optional[str] = None
    default_start_date: Optional[str] = None
    default_end_date: Optional[str] = None

    @property
    def min_year(self) -> Optional[int]:
        return int(self.min_date[:4]) if self.min_date else None

    @property
    def max_year(self) -> Optional[int]:
        return int(self.max_date[:4]) if self.max_date else None


@dataclass(frozen=True)
class GlobalMetadata:
    """Reference metadata shared by all widgets, keyed by dataset."""

    datasets: Mapping[str, DatasetBounds] = field(default_factory=dict)

    def bounds(self, key: Optional[str]) -> Optional[DatasetBounds]:
        if key is None:
            return None
        return self.datasets.get(key)


@dataclass(frozen=True)
class ResolvedParams:
    """Resolved, readiness-checked parameter bag."""

    values: Mapping[str, Any]
    ready: bool
    missing: Tuple[str, ...] = ()
    fingerprint: str = ''

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.values[key]


@dataclass(frozen=True)
class ConfidenceBreakdown:
    """Alert counts per confidence bucket and the mode-dependent total."""

    nominal: int = 0
    high: int = 0
    highest: int = 0
    total: int = 0
    confirmed_only: bool = False


@dataclass(frozen=True)
class AnalysisResult:
    """
    Canonical result shape, independent of the data source.

    Attributes:
        widget: Widget identifier
        source: Data source that served the fetch (None for empty results)
        data: Widget data produced by the descriptor's shape callback
        rows: Normalized row sets keyed by sub-request name
        settings: Settings actually used
        options: Option bounds (e.g. min/max date)
        totals: Sum of each unit-tagged column, per sub-request
        confidence: Confidence bucket breakdown, for alert widgets
        date_range: (start, end) actually served, if the widget is dated
    """

    widget: str
    source: Optional[DataSource] = None
    data: Dict[str, Any] = field(default_factory=dict)
    rows: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    settings: Dict[str, Any] = field(default_factory=dict)
    options: Dict[str, Any] = field(default_factory=dict)
    totals: Dict[str, Dict[str, Union[int, float]]] = field(default_factory=dict)
    confidence: Optional[ConfidenceBreakdown] = None
    date_range: Optional[Tuple[Any, Any]] = None

    @classmethod
    def empty(cls, widget: str) -> 'AnalysisResult':
        return cls(widget=widget)

    @property
    def is_empty(self) -> bool:
        return not self.data and not self.rows


@dataclass(frozen=True)
class DownloadDescriptor:
    """Deferred export request; materialized later by an external transport."""

    name: str
    source: DataSource
    table: str
    sql: str
    url: str
    geometry: Optional[GeometryBinding] = None
    format: str = 'csv'


class FetchState:
    """
    Mutable per-widget fetch state.

    Every fetch is stamped with the generation current at issue time; a
    response is applied only while its generation is still the latest one.
    The raw responses of the last successful fetch are kept so a change to
    parameters outside the refetch keys can be re-shaped without a request.
    """

    def __init__(self, widget: str):
        self.widget = widget
        self.fingerprint: Optional[str] = None
        self.params: Optional[ResolvedParams] = None
        self.fetched_params: Optional[ResolvedParams] = None
        self.status = FetchStatus.IDLE
        self.result: Optional[AnalysisResult] = None
        self.error: Optional[Exception] = None
        self.stale = False
        self.generation = 0
        self.source: Optional[DataSource] = None
        self.requests: Optional[Mapping[str, Any]] = None
        self.responses: Optional[Mapping[str, Any]] = None
        self.future: Optional[Future] = None
        self._lock = threading.Lock()

    def begin(
        self,
        params: ResolvedParams,
        source: Optional[DataSource] = None,
        requests: Optional[Mapping[str, Any]] = None,
        future: Optional[Future] = None
    ) -> int:
        """Record a new fetch request and return its generation."""
        with self._lock:
            self.generation += 1
            self.params = params
            self.fetched_params = params
            self.fingerprint = params.fingerprint
            self.status = FetchStatus.PENDING
            self.error = None
            self.stale = False
            self.source = source
            self.requests = requests
            self.responses = None
            self.future = future
            return self.generation

    def observe(self, params: ResolvedParams) -> None:
        """Track a parameter bag that did not trigger a fetch."""
        with self._lock:
            self.params = params

    def invalidate(self, params: ResolvedParams) -> None:
        """Mark the cached result as stale for a new parameter bag."""
        with self._lock:
            self.params = params
            self.stale = True

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self.generation

    def resolve(
        self,
        generation: int,
        result: AnalysisResult,
        responses: Optional[Mapping[str, Any]] = None
    ) -> bool:
        """Apply a successful response. Returns False if it was stale."""
        with self._lock:
            if generation != self.generation:
                return False
            self.status = FetchStatus.LOADED
            self.result = result
            self.responses = responses
            self.error = None
            return True

    def reshape(self, generation: int, params: ResolvedParams, result: AnalysisResult) -> bool:
        """Replace a loaded result re-shaped for new non-refetch parameters."""
        with self._lock:
            if generation != self.generation or self.status != FetchStatus.LOADED:
                return False
            self.params = params
            self.fingerprint = params.fingerprint
            self.result = result
            self.stale = False
            return True

    def fail(self, generation: int, error: Exception, result: Optional[AnalysisResult] = None) -> bool:
        """Record a failed response. Returns False if it was stale."""
        with self._lock:
            if generation != self.generation:
                return False
            self.status = FetchStatus.ERROR
            self.error = error
            if result is not None:
                self.result = result
            return True

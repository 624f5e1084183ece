"""
Immutable query AST for on-the-fly and precomputed table reads.

A QuerySpec is a value object: every composition method returns a new spec
and never touches the receiver. Predicate values are kept as typed Python
literals; turning a spec into query text is the job of utils.sql, which is
only called at the transport boundary.
"""

import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Optional, Tuple, Union

from models.errors import ConfigurationError

IDENTIFIER_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')

AGGREGATE_FUNCTIONS = ('sum', 'count', 'avg', 'min', 'max')

OPERATORS = ('eq', 'neq', 'gt', 'gte', 'lt', 'lte', 'in')

LITERAL_TYPES = (str, int, float, bool, date, datetime)

DEFAULT_GEOSTORE_ORIGIN = 'rw'


def _check_identifier(name: str, what: str) -> None:
    if not isinstance(name, str) or not IDENTIFIER_PATTERN.match(name):
        raise ConfigurationError(f"Invalid {what} identifier: {name!r}")


@dataclass(frozen=True)
class Projection:
    """A projected expression: a plain column or an aggregate over one."""

    field: str
    function: Optional[str] = None
    alias: Optional[str] = None

    def __post_init__(self):
        if self.function is not None:
            if self.function not in AGGREGATE_FUNCTIONS:
                raise ConfigurationError(f"Unsupported aggregate function: {self.function!r}")
            if self.field != '*':
                _check_identifier(self.field, 'column')
            elif self.function != 'count':
                raise ConfigurationError("Only count() may aggregate over '*'")
        else:
            _check_identifier(self.field, 'column')
        if self.alias is not None:
            _check_identifier(self.alias, 'alias')

    @property
    def is_aggregate(self) -> bool:
        return self.function is not None

    @property
    def output_name(self) -> str:
        """Key under which the value comes back in result rows."""
        if self.alias:
            return self.alias
        if self.field == '*':
            return 'count'
        return self.field


def column(name: str, alias: Optional[str] = None) -> Projection:
    return Projection(field=name, alias=alias)


def total(name: str, alias: Optional[str] = None) -> Projection:
    return Projection(field=name, function='sum', alias=alias)


def count(name: str = '*', alias: Optional[str] = None) -> Projection:
    return Projection(field=name, function='count', alias=alias)


@dataclass(frozen=True)
class Predicate:
    """A single `field <operator> literal` condition. Predicates are AND-combined."""

    field: str
    operator: str
    value: Any

    def __post_init__(self):
        _check_identifier(self.field, 'predicate field')
        if self.operator not in OPERATORS:
            raise ConfigurationError(f"Unsupported operator: {self.operator!r}")

        if self.operator == 'in':
            if isinstance(self.value, (str, bytes)) or not hasattr(self.value, '__iter__'):
                raise ConfigurationError(f"'in' predicate on {self.field} needs a sequence of literals")
            values = tuple(self.value)
            if not values:
                raise ConfigurationError(f"'in' predicate on {self.field} has no values")
            for item in values:
                self._check_literal(item)
            object.__setattr__(self, 'value', values)
        else:
            self._check_literal(self.value)

    def _check_literal(self, value: Any) -> None:
        if value is None or not isinstance(value, LITERAL_TYPES):
            raise ConfigurationError(
                f"Predicate on {self.field} has a non-literal value: {value!r}"
            )


def eq(name: str, value: Any) -> Predicate:
    return Predicate(name, 'eq', value)


def neq(name: str, value: Any) -> Predicate:
    return Predicate(name, 'neq', value)


def gt(name: str, value: Any) -> Predicate:
    return Predicate(name, 'gt', value)


def gte(name: str, value: Any) -> Predicate:
    return Predicate(name, 'gte', value)


def lt(name: str, value: Any) -> Predicate:
    return Predicate(name, 'lt', value)


def lte(name: str, value: Any) -> Predicate:
    return Predicate(name, 'lte', value)


def is_in(name: str, values) -> Predicate:
    return Predicate(name, 'in', values)


@dataclass(frozen=True)
class GeometryBinding:
    """Reference to a stored geometry (geostore) that scopes a spatial query."""

    id: str
    origin: str = DEFAULT_GEOSTORE_ORIGIN

    def __post_init__(self):
        if not self.id:
            raise ConfigurationError("Geometry binding needs a geostore id")


@dataclass(frozen=True)
class QuerySpec:
    """
    Structured analytical query.

    Attributes:
        table: Target dataset/table name
        select: Ordered projections
        where: Ordered predicates, AND-combined
        group_by: Grouping fields
        geometry: Geometry binding, if the query is spatially scoped
        limit: Optional row limit (never applied to downloads)
    """

    table: str
    select: Tuple[Projection, ...] = ()
    where: Tuple[Predicate, ...] = ()
    group_by: Tuple[str, ...] = ()
    geometry: Optional[GeometryBinding] = None
    limit: Optional[int] = None

    def __post_init__(self):
        if not self.table or not isinstance(self.table, str):
            raise ConfigurationError("Query needs a target table")

    # Composition

    def project(self, *projections: Union[Projection, str]) -> 'QuerySpec':
        """Replace the projection list. Strings are shorthand for plain columns."""
        items = tuple(column(p) if isinstance(p, str) else p for p in projections)
        return replace(self, select=items)

    def filter(self, *predicates: Predicate) -> 'QuerySpec':
        """Append predicates; all predicates are AND-combined."""
        for predicate in predicates:
            if not isinstance(predicate, Predicate):
                raise ConfigurationError(f"Not a predicate: {predicate!r}")
        return replace(self, where=self.where + tuple(predicates))

    def group(self, *fields: str) -> 'QuerySpec':
        for name in fields:
            _check_identifier(name, 'grouping')
        return replace(self, group_by=tuple(fields))

    def bind_geometry(self, geostore_id: str, origin: str = DEFAULT_GEOSTORE_ORIGIN) -> 'QuerySpec':
        return replace(self, geometry=GeometryBinding(id=geostore_id, origin=origin))

    def with_limit(self, limit: Optional[int]) -> 'QuerySpec':
        if limit is not None and (not isinstance(limit, int) or limit <= 0):
            raise ConfigurationError(f"Invalid limit: {limit!r}")
        return replace(self, limit=limit)

    # Introspection

    @property
    def aggregates(self) -> bool:
        return any(p.is_aggregate for p in self.select)

    @property
    def output_names(self) -> Tuple[str, ...]:
        return tuple(p.output_name for p in self.select)

    def validate(self, require_geometry: bool = False) -> 'QuerySpec':
        """
        Check the spec is executable.

        Args:
            require_geometry: Whether the location is geometry-backed

        Returns:
            The spec itself, so calls can be chained

        Raises:
            ConfigurationError: If the spec is malformed
        """
        if not self.select:
            raise ConfigurationError(f"Query on {self.table} has an empty projection")

        names = self.output_names
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Query on {self.table} has duplicate output names: {names}")

        plain = [p.field for p in self.select if not p.is_aggregate]
        if self.aggregates and plain:
            if not self.group_by:
                raise ConfigurationError(
                    f"Query on {self.table} aggregates but has no grouping for {plain}"
                )
            ungrouped = [name for name in plain if name not in self.group_by]
            if ungrouped:
                raise ConfigurationError(
                    f"Query on {self.table} projects ungrouped columns {ungrouped}"
                )

        if require_geometry and self.geometry is None:
            raise ConfigurationError(
                f"Query on {self.table} targets a geometry-backed location but has no geometry binding"
            )
        return self


def query(table: str) -> QuerySpec:
    """Start a new empty QuerySpec against `table`."""
    return QuerySpec(table=table)


@dataclass(frozen=True)
class AdminScope:
    """Administrative or geometry scope of a precomputed aggregate read."""

    adm0: Optional[str] = None
    adm1: Optional[int] = None
    adm2: Optional[int] = None
    wdpa_id: Optional[str] = None
    geostore_id: Optional[str] = None

    def predicates(self) -> Tuple[Predicate, ...]:
        """Predicates restricting a summary table to this scope."""
        conditions = []
        if self.adm0:
            conditions.append(eq('iso', self.adm0))
        if self.adm1 is not None:
            conditions.append(eq('adm1', self.adm1))
        if self.adm2 is not None:
            conditions.append(eq('adm2', self.adm2))
        if self.wdpa_id:
            conditions.append(eq('wdpa_protected_area__id', self.wdpa_id))
        if self.geostore_id:
            conditions.append(eq('geostore__id', self.geostore_id))
        return tuple(conditions)


@dataclass(frozen=True)
class PrecomputedRequest:
    """A read against a materialized aggregate table."""

    query: QuerySpec
    scope: AdminScope = field(default_factory=AdminScope)

    @property
    def dataset(self) -> str:
        return self.query.table

    def to_query(self) -> QuerySpec:
        """Expand the scope into predicates on the underlying spec."""
        if self.query.geometry is not None:
            raise ConfigurationError(
                f"Precomputed read of {self.dataset} must not carry a geometry binding"
            )
        return self.query.filter(*self.scope.predicates())

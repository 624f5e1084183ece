"""
Serialization of QuerySpec objects into Data API SQL.

This is the only place query text is assembled. Identifiers were validated
when the spec was built; literals are escaped here.
"""

from datetime import date, datetime
from typing import Any

from models.errors import ConfigurationError
from models.query import Predicate, Projection, QuerySpec

OPERATOR_SQL = {
    'eq': '=',
    'neq': '!=',
    'gt': '>',
    'gte': '>=',
    'lt': '<',
    'lte': '<=',
}


def quote_literal(value: Any) -> str:
    """Render a typed literal as SQL, escaping strings."""
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, datetime):
        return "'" + value.isoformat(sep=' ') + "'"
    if isinstance(value, date):
        return "'" + value.isoformat() + "'"
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    raise ConfigurationError(f"Cannot serialize literal {value!r}")


def render_projection(projection: Projection) -> str:
    if projection.is_aggregate:
        expression = f"{projection.function.upper()}({projection.field})"
    else:
        expression = projection.field
    if projection.alias or (projection.is_aggregate and projection.field != '*'):
        return f"{expression} AS {projection.output_name}"
    return expression


def render_predicate(predicate: Predicate) -> str:
    if predicate.operator == 'in':
        values = ', '.join(quote_literal(v) for v in predicate.value)
        return f"{predicate.field} IN ({values})"
    return f"{predicate.field} {OPERATOR_SQL[predicate.operator]} {quote_literal(predicate.value)}"


def to_sql(spec: QuerySpec) -> str:
    """
    Serialize a validated spec.

    The table is addressed through the Data API URL, so the statement always
    reads `FROM data`. The geometry binding travels as request parameters,
    not SQL.
    """
    parts = ['SELECT ' + ', '.join(render_projection(p) for p in spec.select), 'FROM data']
    if spec.where:
        parts.append('WHERE ' + ' AND '.join(render_predicate(p) for p in spec.where))
    if spec.group_by:
        parts.append('GROUP BY ' + ', '.join(spec.group_by))
    if spec.limit is not None:
        parts.append(f"LIMIT {int(spec.limit)}")
    return ' '.join(parts)

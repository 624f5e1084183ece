"""
Tabular helpers used when normalizing Data API responses:
- Building DataFrames from row sets
- Unit-aware numeric coercion (integer counts, float hectares)
- Column totals and year ranges
- Stable fingerprints of parameter bags
"""

import hashlib
import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

COUNT = 'count'
HECTARES = 'ha'


def infer_unit(column: str, declared: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """
    Work out the unit of a column.

    Declared units win; otherwise Data API naming conventions are used
    (`*__ha` columns are hectares, `*__count` and `count` are counts).
    """
    if declared and column in declared:
        return declared[column]
    if column.endswith('__ha'):
        return HECTARES
    if column == 'count' or column.endswith('__count'):
        return COUNT
    return None


def frame_from_rows(rows: Sequence[Mapping[str, Any]], columns: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """
    Build a DataFrame from a list of row mappings.

    Args:
        rows: Row mappings as returned by the Data API
        columns: Columns that must exist even if no row carries them

    Returns:
        DataFrame with at least `columns`
    """
    df = pd.DataFrame.from_records(list(rows)) if rows else pd.DataFrame()
    if columns:
        for name in columns:
            if name not in df.columns:
                df[name] = np.nan
    return df


def coerce_numeric_columns(df: pd.DataFrame, units: Optional[Mapping[str, str]] = None) -> pd.DataFrame:
    """
    Coerce unit-tagged columns: counts to int64, hectares to float64.

    Missing or unparseable values become 0 so downstream arithmetic never
    has to branch on absence.
    """
    if df is None:
        return pd.DataFrame()

    df = df.copy()
    for name in df.columns:
        unit = infer_unit(str(name), units)
        if unit is None:
            continue
        values = pd.to_numeric(df[name], errors='coerce').fillna(0)
        if unit == COUNT:
            df[name] = values.round().astype('int64')
        else:
            df[name] = values.astype('float64')
    return df


def frame_to_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Convert a frame back into plain rows, replacing NaN with None."""
    if df is None or df.empty:
        return []
    cleaned = df.astype(object).where(pd.notnull(df), None)
    return cleaned.to_dict(orient='records')


def column_total(df: pd.DataFrame, column: str, unit: Optional[str] = None):
    """Sum a column, returning an int for counts and a float otherwise."""
    if df is None or df.empty or column not in df.columns:
        return 0 if unit == COUNT else 0.0
    value = pd.to_numeric(df[column], errors='coerce').fillna(0).sum()
    if unit == COUNT:
        return int(value)
    return float(value)


def unit_totals(df: pd.DataFrame, units: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Totals of every unit-tagged column in a frame."""
    totals = {}
    if df is None:
        return totals
    for name in df.columns:
        unit = infer_unit(str(name), units)
        if unit is not None:
            totals[str(name)] = column_total(df, name, unit)
    return totals


def years_range(start_year: int, end_year: int) -> List[int]:
    """Inclusive list of years between two bounds (order-insensitive)."""
    low, high = sorted((int(start_year), int(end_year)))
    return list(range(low, high + 1))


def fingerprint(values: Mapping[str, Any]) -> str:
    """Stable digest of a parameter bag, independent of key order."""
    payload = json.dumps(_plain(values), sort_keys=True, default=str)
    return hashlib.sha1(payload.encode('utf-8')).hexdigest()


def _plain(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)) and not isinstance(value, str):
        items = [_plain(v) for v in value]
        return sorted(items, key=str) if isinstance(value, (set, frozenset)) else items
    return value

"""
Refetch invalidation.

Only a widget's declared refetch keys gate a new request; churn in other
parameters leaves the cached result alone.
"""

from typing import FrozenSet, Iterable, Optional

from models.data_models import ResolvedParams


def changed_keys(
    previous: Optional[ResolvedParams],
    current: ResolvedParams,
    keys: Iterable[str]
) -> FrozenSet[str]:
    """Keys among `keys` whose resolved value differs between two bags."""
    if previous is None:
        return frozenset(keys)
    return frozenset(k for k in keys if previous.get(k) != current.get(k))


def is_stale(
    previous: Optional[ResolvedParams],
    current: ResolvedParams,
    refetch_keys: Iterable[str]
) -> bool:
    """
    Whether `current` invalidates a result fetched with `previous`.

    A bag that is not ready is never stale (nothing may be fetched yet).
    Becoming ready for the first time always is.
    """
    if not current.ready:
        return False
    if previous is None or not previous.ready:
        return True
    return bool(changed_keys(previous, current, refetch_keys))

"""Tests for refetch invalidation."""

from models.data_models import ResolvedParams
from services.refetch_invalidator import changed_keys, is_stale

REFETCH_KEYS = ('threshold', 'landCategory')


def bag(ready=True, **values):
    return ResolvedParams(values=values, ready=ready)


def test_non_refetch_change_is_not_stale():
    previous = bag(threshold=30, startYear=2002)
    current = bag(threshold=30, startYear=2010)
    assert not is_stale(previous, current, REFETCH_KEYS)


def test_refetch_change_is_stale():
    previous = bag(threshold=30, landCategory=None)
    current = bag(threshold=30, landCategory='kba')
    assert is_stale(previous, current, REFETCH_KEYS)
    assert changed_keys(previous, current, REFETCH_KEYS) == {'landCategory'}


def test_first_readiness_is_stale():
    assert is_stale(None, bag(threshold=30), REFETCH_KEYS)
    assert is_stale(bag(ready=False), bag(threshold=30), REFETCH_KEYS)


def test_not_ready_is_never_stale():
    assert not is_stale(bag(threshold=30), bag(ready=False, threshold=50), REFETCH_KEYS)

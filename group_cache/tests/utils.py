"""
Test utilities for the group cache.

Provides in-memory stores that record calls and can be told to fail, so the
versioned protocol can be tested without any Django cache backend, plus a
helper that wires them into a ``GroupCache``.
"""

from typing import Any, Dict, List, Optional, Set, Tuple

from group_cache.backends import ObjectStore, TransientStore
from group_cache.facade import GroupCache
from group_cache.metrics import CacheMetrics

_MISSING = object()


class FailingStoreMixin:
    """Records operation names and raises ConnectionError for those in ``fail_on``."""

    def _init_tracking(self):
        self.calls: List[str] = []
        self.fail_on: Set[str] = set()

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise ConnectionError(f"{operation} unavailable")


class InMemoryObjectStore(FailingStoreMixin, ObjectStore):
    """Dict backed ``ObjectStore`` keyed by ``(group, key)``."""

    def __init__(self):
        self._init_tracking()
        self.data: Dict[Tuple[str, str], Any] = {}
        self.ttls: Dict[Tuple[str, str], int] = {}
        self.force_refresh_calls: List[bool] = []

    def get(self, key, group, force_refresh=False):
        self._check("get")
        self.force_refresh_calls.append(force_refresh)
        value = self.data.get((group, key), _MISSING)
        if value is _MISSING:
            return None, False
        return value, True

    def set(self, key, value, group, ttl=0):
        self._check("set")
        self.data[(group, key)] = value
        self.ttls[(group, key)] = ttl
        return True

    def delete(self, key, group):
        self._check("delete")
        self.ttls.pop((group, key), None)
        return self.data.pop((group, key), _MISSING) is not _MISSING

    def incr(self, key, amount, group):
        self._check("incr")
        value = self.data.get((group, key), 0) + amount
        self.data[(group, key)] = value
        return value

    def flush(self):
        self._check("flush")
        self.data.clear()
        self.ttls.clear()


class ClearOnlyObjectStore(InMemoryObjectStore):
    """Store exposing only a store-wide ``clear``."""

    flush = None

    def clear(self):
        self._check("clear")
        self.data.clear()


class UnflushableObjectStore(InMemoryObjectStore):
    """Store exposing neither ``flush`` nor ``clear``."""

    flush = None


class InMemoryTransientStore(FailingStoreMixin, TransientStore):
    """Dict backed ``TransientStore``."""

    def __init__(self):
        self._init_tracking()
        self.data: Dict[str, Any] = {}
        self.ttls: Dict[str, int] = {}

    def get(self, key):
        self._check("get")
        value = self.data.get(key, _MISSING)
        if value is _MISSING:
            return None, False
        return value, True

    def set(self, key, value, ttl=0):
        self._check("set")
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    def delete(self, key):
        self._check("delete")
        self.ttls.pop(key, None)
        return self.data.pop(key, _MISSING) is not _MISSING


class Toggle:
    """Enablement predicate with per-category switches."""

    def __init__(self, **enabled: bool):
        self.enabled = {"object": True, "transient": True}
        self.enabled.update(enabled)
        self.calls: List[str] = []

    def __call__(self, category: str) -> bool:
        self.calls.append(category)
        return self.enabled.get(category, True)


def make_group_cache(
    object_store: Optional[ObjectStore] = None,
    prefix: str = "test",
    toggle: Optional[Toggle] = None,
) -> GroupCache:
    """Build a ``GroupCache`` on in-memory stores with its own metrics."""
    return GroupCache(
        object_store=object_store if object_store is not None else InMemoryObjectStore(),
        local_store=InMemoryTransientStore(),
        shared_store=InMemoryTransientStore(),
        prefix=prefix,
        can_cache=toggle if toggle is not None else Toggle(),
        metrics=CacheMetrics(),
    )


class CountingCompute:
    """Zero-argument callable returning a fixed result and counting calls."""

    def __init__(self, result: Any):
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.result

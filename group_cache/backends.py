"""
Store capabilities used by the group cache, plus Django cache adapters.

The group cache only needs flat key/value primitives:

- ``ObjectStore``: get/set/delete/incr inside a group, optional ``flush``.
  Groups here are plain key namespaces, the store knows nothing about
  versions.
- ``TransientStore``: get/set/delete for longer lived values, one instance
  per scope (local or shared).

Both Django adapters resolve their cache lazily through
``django.core.cache.caches`` so they can be built before settings are
overridden in tests.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, Tuple

from django.core.cache import caches
from django.core.cache.backends.base import BaseCache

from group_cache.keys import GROUP_SEPARATOR


_MISSING = object()


def _timeout(ttl: int) -> Optional[int]:
    """Translate a ttl (0 = no expiry) to a Django cache timeout."""
    if ttl is None or ttl <= 0:
        return None
    return int(ttl)


class ObjectStore(ABC):
    """Flat key/value store with grouped keys and atomic increment."""

    @abstractmethod
    def get(self, key: str, group: str, force_refresh: bool = False) -> Tuple[Any, bool]:
        """
        Get a value.

        Returns:
            ``(value, found)``; ``found`` tells a stored falsy value from a miss.
        """
        ...

    @abstractmethod
    def set(self, key: str, value: Any, group: str, ttl: int = 0) -> bool:
        """Store a value; ttl 0 means no expiry. Returns success."""
        ...

    @abstractmethod
    def delete(self, key: str, group: str) -> bool:
        """Delete a value. Returns True if something was removed."""
        ...

    @abstractmethod
    def incr(self, key: str, amount: int, group: str) -> int:
        """
        Atomically increment an integer.

        A missing key counts as 0 before the increment.

        Returns:
            The value after the increment
        """
        ...


class TransientStore(ABC):
    """Flat key/value store for one transient scope."""

    @abstractmethod
    def get(self, key: str) -> Tuple[Any, bool]:
        """Get a value as ``(value, found)``."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any, ttl: int = 0) -> bool:
        """Store a value; ttl 0 means no expiry."""
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete a value."""
        ...


class DjangoObjectStore(ObjectStore):
    """
    ``ObjectStore`` on top of a Django cache alias.

    Physical keys are ``{group}:{key}``. Group names cannot contain ``:``
    (see ``KeyNamer.group``), so the first ``:`` after the prefix always ends
    the group. The alias's own ``KEY_PREFIX`` and
    ``VERSION`` are applied by Django on top. ``force_refresh`` has no
    meaning for Django caches and is ignored.

    Example Usage:
        >>> store = DjangoObjectStore("default")
        >>> store.set("posts", [1, 2], "myapp_default")
        True
        >>> store.get("posts", "myapp_default")
        ([1, 2], True)
    """

    def __init__(self, alias: str = "default"):
        self.alias = alias

    @property
    def cache(self) -> BaseCache:
        return caches[self.alias]

    def make_key(self, key: str, group: str) -> str:
        return f"{group}{GROUP_SEPARATOR}{key}"

    def get(self, key: str, group: str, force_refresh: bool = False) -> Tuple[Any, bool]:
        value = self.cache.get(self.make_key(key, group), _MISSING)
        if value is _MISSING:
            return None, False
        return value, True

    def set(self, key: str, value: Any, group: str, ttl: int = 0) -> bool:
        self.cache.set(self.make_key(key, group), value, timeout=_timeout(ttl))
        return True

    def delete(self, key: str, group: str) -> bool:
        return bool(self.cache.delete(self.make_key(key, group)))

    def incr(self, key: str, amount: int, group: str) -> int:
        cache_key = self.make_key(key, group)
        try:
            return self.cache.incr(cache_key, amount)
        except ValueError:
            # Missing key. add() only sets if the key is still absent, so a
            # concurrent creator wins and we increment its value instead.
            if self.cache.add(cache_key, amount, timeout=None):
                return amount
            return self.cache.incr(cache_key, amount)

    def flush(self) -> None:
        """Clear the whole Django cache alias."""
        self.cache.clear()


class DjangoTransientStore(TransientStore):
    """
    ``TransientStore`` on top of a Django cache alias.

    Keys are namespaced by scope (``local:`` or ``shared:``) so both scopes
    can share one alias without colliding.
    """

    def __init__(self, alias: str = "default", scope: str = "local"):
        self.alias = alias
        self.scope = scope

    @property
    def cache(self) -> BaseCache:
        return caches[self.alias]

    def make_key(self, key: str) -> str:
        return f"{self.scope}:{key}"

    def get(self, key: str) -> Tuple[Any, bool]:
        value = self.cache.get(self.make_key(key), _MISSING)
        if value is _MISSING:
            return None, False
        return value, True

    def set(self, key: str, value: Any, ttl: int = 0) -> bool:
        self.cache.set(self.make_key(key), value, timeout=_timeout(ttl))
        return True

    def delete(self, key: str) -> bool:
        return bool(self.cache.delete(self.make_key(key)))

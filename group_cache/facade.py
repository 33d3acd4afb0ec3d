"""
Group cache facade.

``GroupCache`` ties the versioned object cache and the transient stores
together and adds the compute-or-fetch helpers:

- ``remember`` / ``forget``: object cache, grouped and versioned
- ``persist`` / ``cease``: transient cache, local or shared scope

``cache`` is a lazily built instance configured from ``GROUP_CACHE``
settings, rebuilt whenever ``GROUP_CACHE`` or ``CACHES`` change:

    from group_cache.facade import cache

    posts = cache.remember("recent", lambda: list(Post.objects.recent()), group="posts")
    cache.flush_group("posts")
"""

import logging
from typing import Any, Callable, Optional, Tuple

from django.core.signals import setting_changed
from django.dispatch import receiver
from django.utils.functional import LazyObject, empty

from group_cache.backends import (
    DjangoObjectStore,
    DjangoTransientStore,
    ObjectStore,
    TransientStore,
)
from group_cache.conf import DEFAULT_PREFIX, SETTINGS_NAME, GroupCacheSettings, get_config
from group_cache.enablement import TRANSIENT, default_can_cache
from group_cache.keys import KeyName, KeyNamer
from group_cache.metrics import CacheMetrics, cache_metrics
from group_cache.namespace import VersionedNamespace
from group_cache.results import is_failure

logger = logging.getLogger(__name__)

LOCAL_SCOPE = "local"
SHARED_SCOPE = "shared"


class GroupCache:
    """
    Caching facade with group invalidation and compute-or-fetch helpers.

    All stores and the enablement predicate are injected, which keeps the
    facade usable with any backend and testable with in-memory fakes. Use
    ``from_settings`` to build one from Django settings.

    Example Usage:
        >>> gc = GroupCache.from_settings()
        >>> gc.remember("stats", compute_stats, group="reports", ttl=300)
        >>> gc.flush_group("reports")
        >>> gc.persist("exchange_rates", fetch_rates, shared=True, ttl=3600)
    """

    def __init__(
        self,
        object_store: ObjectStore,
        local_store: TransientStore,
        shared_store: TransientStore,
        prefix: str = DEFAULT_PREFIX,
        can_cache: Callable[[str], bool] = default_can_cache,
        metrics: Optional[CacheMetrics] = None,
    ):
        self.object_store = object_store
        self.local_store = local_store
        self.shared_store = shared_store
        self.can_cache = can_cache
        self.metrics = metrics if metrics is not None else cache_metrics
        self.namer = KeyNamer(prefix)
        self.namespace = VersionedNamespace(object_store, self.namer, can_cache, self.metrics)

    @classmethod
    def from_settings(
        cls,
        config: Optional[GroupCacheSettings] = None,
        can_cache: Callable[[str], bool] = default_can_cache,
        metrics: Optional[CacheMetrics] = None,
    ) -> "GroupCache":
        """Build a facade on the Django cache aliases named in ``GROUP_CACHE``."""
        config = config or get_config()
        return cls(
            object_store=DjangoObjectStore(config.object_cache),
            local_store=DjangoTransientStore(config.local_cache, LOCAL_SCOPE),
            shared_store=DjangoTransientStore(config.shared_cache, SHARED_SCOPE),
            prefix=config.prefix,
            can_cache=can_cache,
            metrics=metrics,
        )

    # Object cache

    def remember(self, key: KeyName, compute: Callable[[], Any], group: KeyName = "", ttl: int = 0) -> Any:
        """
        Get a value from the object cache, or compute and cache it.

        ``compute`` is only called on a miss. Its result is returned as is;
        it is cached unless it is error-shaped (see ``group_cache.results``).
        A failed cache write does not change the returned value. An unusable
        key or group (empty, reserved, wrong type) bypasses the cache and
        still calls ``compute``.

        Args:
            key: Cache key
            compute: Zero-argument callable producing the value
            group: Group name, empty for the default group
            ttl: Seconds until expiry, 0 for no expiry

        Returns:
            The cached value, or the value returned by ``compute``
        """
        cached, found = self.namespace.read(key, group)
        if found:
            return cached

        value = compute()

        if is_failure(value):
            logger.debug(
                f"Cache skipped - group={group}, key={key}, operation=remember, "
                f"reason=failure_result"
            )
        else:
            self.namespace.write(key, value, group, ttl)

        return value

    def forget(self, key: KeyName, group: KeyName = "", default: Any = None) -> Any:
        """
        Get a value from the object cache and delete it.

        Returns:
            The cached value, or ``default`` if nothing was cached
        """
        cached, found = self.namespace.read(key, group)
        if found:
            self.namespace.delete(key, group)
            return cached

        return default

    def get_cache(self, key: KeyName, group: KeyName = "", force: bool = False) -> Tuple[Any, bool]:
        """Read from the object cache; returns ``(value, found)``."""
        return self.namespace.read(key, group, force)

    def set_cache(self, key: KeyName, value: Any, group: KeyName = "", ttl: int = 0) -> bool:
        """Write to the object cache under the group's current version."""
        return self.namespace.write(key, value, group, ttl)

    def delete_cache(self, key: KeyName, group: KeyName = "") -> bool:
        """Delete an object cache entry."""
        return self.namespace.delete(key, group)

    def flush_group(self, group: KeyName) -> Optional[int]:
        """Invalidate every object cache entry in a group; returns the new version."""
        return self.namespace.invalidate_group(group)

    def flush(self) -> None:
        """
        Flush the entire object cache backend.

        WARNING: this drops everything in the backend, not just our entries.
        Prefer ``flush_group``. Uses the store's ``flush`` if it has one,
        then its ``clear``; does nothing if neither exists.
        """
        store = self.object_store
        flush = getattr(store, "flush", None)
        if not callable(flush):
            flush = getattr(store, "clear", None)

        if not callable(flush):
            logger.debug(
                f"Cache flush skipped - operation=flush, "
                f"store={type(store).__name__}, reason=unsupported"
            )
            return

        logger.warning(f"Cache flush - operation=flush, store={type(store).__name__}")
        try:
            flush()
        except Exception as e:
            self.metrics.failed('flush')
            logger.error(f"Cache error - operation=flush, error={str(e)}", exc_info=True)

    # Transient cache

    def persist(self, key: KeyName, compute: Callable[[], Any], shared: bool = False, ttl: int = 0) -> Any:
        """
        Get a value from the transient cache, or compute and store it.

        Args:
            key: Transient key
            compute: Zero-argument callable producing the value
            shared: Use the shared scope instead of the local one
            ttl: Seconds until expiry, 0 for no expiry

        Returns:
            The stored value, or the value returned by ``compute``
        """
        cached, found = self.get_transient(key, shared)
        if found:
            return cached

        value = compute()

        if is_failure(value):
            logger.debug(
                f"Cache skipped - scope={self._scope(shared)}, key={key}, "
                f"operation=persist, reason=failure_result"
            )
        else:
            self.set_transient(key, value, shared, ttl)

        return value

    def cease(self, key: KeyName, shared: bool = False, default: Any = None) -> Any:
        """
        Get a value from the transient cache and delete it.

        Returns:
            The stored value, or ``default`` if nothing was stored
        """
        cached, found = self.get_transient(key, shared)
        if found:
            self.delete_transient(key, shared)
            return cached

        return default

    def get_transient(self, key: KeyName, shared: bool = False) -> Tuple[Any, bool]:
        """Read a prefixed transient; returns ``(value, found)``."""
        if not self.can_cache(TRANSIENT):
            return None, False

        scope = self._scope(shared)
        metrics_group = f"transient:{scope}"
        transient_key = self._transient_key(key, scope, 'transient_read')
        if transient_key is None:
            return None, False

        try:
            with self.metrics.timed('transient_read', group=metrics_group):
                value, found = self._store(shared).get(transient_key)
        except Exception as e:
            self.metrics.failed('transient_read', metrics_group)
            logger.error(
                f"Cache error - scope={scope}, key={transient_key}, "
                f"operation=transient_read, error={str(e)}",
                exc_info=True
            )
            return None, False

        if found:
            self.metrics.hit(metrics_group)
        else:
            self.metrics.miss(metrics_group)
        logger.debug(
            f"Cache {'hit' if found else 'miss'} - scope={scope}, "
            f"key={transient_key}, operation=transient_read"
        )
        return (value, True) if found else (None, False)

    def set_transient(self, key: KeyName, value: Any, shared: bool = False, ttl: int = 0) -> bool:
        """Store a prefixed transient. Returns False if disabled or failed."""
        if not self.can_cache(TRANSIENT):
            return False

        scope = self._scope(shared)
        metrics_group = f"transient:{scope}"
        transient_key = self._transient_key(key, scope, 'transient_write')
        if transient_key is None:
            return False

        try:
            with self.metrics.timed('transient_write', group=metrics_group):
                stored = self._store(shared).set(transient_key, value, ttl)
        except Exception as e:
            self.metrics.failed('transient_write', metrics_group)
            logger.error(
                f"Cache error - scope={scope}, key={transient_key}, "
                f"operation=transient_write, error={str(e)}",
                exc_info=True
            )
            return False

        logger.debug(
            f"Cache set - scope={scope}, key={transient_key}, "
            f"operation=transient_write, ttl={ttl}, stored={stored}"
        )
        return bool(stored)

    def delete_transient(self, key: KeyName, shared: bool = False) -> bool:
        """Delete a prefixed transient."""
        scope = self._scope(shared)
        metrics_group = f"transient:{scope}"
        transient_key = self._transient_key(key, scope, 'transient_delete')
        if transient_key is None:
            return False

        try:
            deleted = self._store(shared).delete(transient_key)
        except Exception as e:
            self.metrics.failed('transient_delete', metrics_group)
            logger.error(
                f"Cache error - scope={scope}, key={transient_key}, "
                f"operation=transient_delete, error={str(e)}",
                exc_info=True
            )
            return False

        return bool(deleted)

    def _transient_key(self, key: KeyName, scope: str, operation: str) -> Optional[str]:
        try:
            return self.namer.transient_key(key)
        except ValueError as e:
            logger.warning(
                f"Cache bypassed - scope={scope}, key={key!r}, "
                f"operation={operation}, reason={e}"
            )
            return None

    def _store(self, shared: bool) -> TransientStore:
        return self.shared_store if shared else self.local_store

    def _scope(self, shared: bool) -> str:
        return SHARED_SCOPE if shared else LOCAL_SCOPE


class DefaultGroupCache(LazyObject):
    """``GroupCache`` built from settings on first use."""

    def _setup(self):
        self._wrapped = GroupCache.from_settings()


cache = DefaultGroupCache()


@receiver(setting_changed)
def reset_default_cache(*, setting, **kwargs):
    """Rebuild the default facade when its settings change (e.g. override_settings)."""
    if setting in (SETTINGS_NAME, "CACHES"):
        cache._wrapped = empty

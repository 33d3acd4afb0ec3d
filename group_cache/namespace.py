"""
Versioned group namespace for O(1) group invalidation.

Cache backends can delete a single key or flush everything, but cannot
delete "every key in a group". This module emulates that with a version
counter per group:

- The counter lives at ``{prefix}_version`` inside the group.
- Every entry is stored as ``{"payload": value, "version": n}`` where ``n``
  is the counter value at write time.
- A read is a hit only while the entry's version equals the counter.
- Invalidating a group increments the counter. Old entries stay in the
  backend until they expire or get overwritten, but are never served again.

Version 0 or a missing counter means the group was never written: reads
miss and the next write initializes the counter to 1.
"""

import logging
from typing import Any, Callable, Optional, Tuple

from group_cache.backends import ObjectStore
from group_cache.enablement import OBJECT, default_can_cache
from group_cache.keys import KeyName, KeyNamer
from group_cache.metrics import CacheMetrics, cache_metrics

logger = logging.getLogger(__name__)

INITIAL_VERSION = 1

_GROUP_ONLY = object()


def _is_empty(payload: Any) -> bool:
    """None and empty strings/collections are not served as hits."""
    if payload is None:
        return True
    if isinstance(payload, (str, bytes, list, tuple, dict, set, frozenset)):
        return len(payload) == 0
    return False


class VersionedNamespace:
    """
    Group scoped read/write/delete/invalidate on top of an ``ObjectStore``.

    Backend errors never reach the caller: they are logged, counted, and
    degrade to a miss (reads), ``False`` (writes/deletes) or ``None``
    (invalidation). Unusable key or group names are logged and
    degrade the same way.

    Example Usage:
        >>> ns = VersionedNamespace(DjangoObjectStore(), KeyNamer("myapp"))
        >>> ns.write("a", "1", "g")
        True
        >>> ns.invalidate_group("g")
        2
        >>> ns.read("a", "g")
        (None, False)
    """

    def __init__(
        self,
        store: ObjectStore,
        namer: KeyNamer,
        can_cache: Callable[[str], bool] = default_can_cache,
        metrics: Optional[CacheMetrics] = None,
    ):
        self.store = store
        self.namer = namer
        self.can_cache = can_cache
        self.metrics = metrics if metrics is not None else cache_metrics

    def get_group_version(self, group: KeyName = "") -> int:
        """
        Get the current version of a group without initializing it.

        Returns:
            Current version, or 0 if the group has no version yet or the
            backend failed
        """
        resolved = self._resolve(_GROUP_ONLY, group, "version_get")
        if resolved is None:
            return 0
        cache_group, _ = resolved
        try:
            return self._current_version(cache_group)
        except Exception as e:
            self.metrics.failed('version_get', cache_group)
            logger.error(
                f"Cache error - group={cache_group}, operation=version_get, "
                f"error={str(e)}",
                exc_info=True
            )
            return 0

    def read(self, key: KeyName, group: KeyName = "", force_refresh: bool = False) -> Tuple[Any, bool]:
        """
        Read an entry if it belongs to the group's current version.

        Args:
            key: Cache key
            group: Group name, empty for the default group
            force_refresh: Passed through to the store

        Returns:
            ``(value, found)``; ``(None, False)`` on any kind of miss
        """
        if not self.can_cache(OBJECT):
            return None, False

        resolved = self._resolve(key, group, "read")
        if resolved is None:
            return None, False
        cache_group, cache_key = resolved

        try:
            with self.metrics.timed('read', group=cache_group):
                version = self._current_version(cache_group)
                if not version:
                    logger.debug(
                        f"Cache miss - group={cache_group}, key={cache_key}, "
                        f"operation=read, reason=no_version"
                    )
                    self.metrics.miss(cache_group)
                    return None, False

                entry, found = self.store.get(cache_key, cache_group, force_refresh)
        except Exception as e:
            self.metrics.failed('read', cache_group)
            logger.error(
                f"Cache error - group={cache_group}, key={cache_key}, "
                f"operation=read, error={str(e)}",
                exc_info=True
            )
            return None, False

        if not found or not isinstance(entry, dict) or 'version' not in entry:
            reason = "absent" if not found else "malformed"
        elif entry['version'] != version:
            reason = "stale"
        elif _is_empty(entry.get('payload')):
            reason = "empty"
        else:
            logger.debug(
                f"Cache hit - group={cache_group}, key={cache_key}, "
                f"operation=read, version={version}"
            )
            self.metrics.hit(cache_group)
            return entry['payload'], True

        logger.debug(
            f"Cache miss - group={cache_group}, key={cache_key}, "
            f"operation=read, reason={reason}, version={version}"
        )
        self.metrics.miss(cache_group)
        return None, False

    def write(self, key: KeyName, value: Any, group: KeyName = "", ttl: int = 0) -> bool:
        """
        Write an entry tagged with the group's current version.

        Initializes the group version to 1 if it does not exist yet. The
        check-then-set is not atomic: two first writers racing on an empty
        group both initialize it and the last write wins.

        Args:
            key: Cache key
            value: Value to store
            group: Group name, empty for the default group
            ttl: Seconds until expiry, 0 for no expiry

        Returns:
            The store's write outcome, False if caching is disabled or failed
        """
        if not self.can_cache(OBJECT):
            return False

        resolved = self._resolve(key, group, "write")
        if resolved is None:
            return False
        cache_group, cache_key = resolved

        try:
            with self.metrics.timed('write', group=cache_group):
                version = self._current_version(cache_group)
                if not version:
                    version = INITIAL_VERSION
                    self.store.set(self.namer.version_key, version, cache_group, 0)
                    logger.info(
                        f"Cache version initialized - group={cache_group}, "
                        f"version={version}, operation=version_init"
                    )

                stored = self.store.set(
                    cache_key,
                    {'payload': value, 'version': version},
                    cache_group,
                    ttl,
                )
        except Exception as e:
            self.metrics.failed('write', cache_group)
            logger.error(
                f"Cache error - group={cache_group}, key={cache_key}, "
                f"operation=write, error={str(e)}",
                exc_info=True
            )
            return False

        logger.debug(
            f"Cache set - group={cache_group}, key={cache_key}, operation=write, "
            f"version={version}, ttl={ttl}, stored={stored}"
        )
        return bool(stored)

    def delete(self, key: KeyName, group: KeyName = "") -> bool:
        """
        Delete the physical entry regardless of its version.

        Returns:
            True if the store removed an entry
        """
        resolved = self._resolve(key, group, "delete")
        if resolved is None:
            return False
        cache_group, cache_key = resolved

        try:
            deleted = self.store.delete(cache_key, cache_group)
        except Exception as e:
            self.metrics.failed('delete', cache_group)
            logger.error(
                f"Cache error - group={cache_group}, key={cache_key}, "
                f"operation=delete, error={str(e)}",
                exc_info=True
            )
            return False

        logger.debug(
            f"Cache delete - group={cache_group}, key={cache_key}, "
            f"operation=delete, deleted={deleted}"
        )
        return bool(deleted)

    def invalidate_group(self, group: KeyName = "") -> Optional[int]:
        """
        Invalidate every entry of a group by incrementing its version.

        Uses the store's atomic increment; a group without a version is
        treated as version 0. No entry is touched.

        Returns:
            The new version, or None if the backend failed
        """
        resolved = self._resolve(_GROUP_ONLY, group, "invalidate")
        if resolved is None:
            return None
        cache_group, _ = resolved

        try:
            with self.metrics.timed('invalidate', group=cache_group):
                new_version = self.store.incr(self.namer.version_key, 1, cache_group)
        except Exception as e:
            self.metrics.failed('invalidate', cache_group)
            logger.error(
                f"Cache error - group={cache_group}, operation=invalidate, "
                f"error={str(e)}",
                exc_info=True
            )
            return None

        self.metrics.invalidated(cache_group)
        logger.info(
            f"Cache invalidated - group={cache_group}, operation=invalidate, "
            f"new_version={new_version}"
        )
        return new_version

    def _current_version(self, cache_group: str) -> int:
        """Read the version counter of a prefixed group; 0 when unset or invalid."""
        version, found = self.store.get(self.namer.version_key, cache_group)

        if not found or isinstance(version, bool) or not isinstance(version, int) or version <= 0:
            return 0

        logger.debug(
            f"Cache version retrieved - group={cache_group}, version={version}, "
            f"operation=version_get"
        )
        return version

    def _resolve(self, key: Any, group: KeyName, operation: str) -> Optional[Tuple[str, Optional[str]]]:
        """
        Prefix a group and key, or return None if either is unusable.

        An unusable name (empty, reserved, wrong type) turns the call into a
        cache bypass instead of an error.
        """
        try:
            cache_group = self.namer.group(group)
            cache_key = None if key is _GROUP_ONLY else self.namer.key(key)
        except ValueError as e:
            logger.warning(
                f"Cache bypassed - group={group!r}, key={key!r}, "
                f"operation={operation}, reason={e}"
            )
            return None
        return cache_group, cache_key

"""
Configuration for the group cache app.

All settings live under a single ``GROUP_CACHE`` dict in Django settings:

    GROUP_CACHE = {
        "PREFIX": "myapp_cache",
        "OBJECT_CACHE": "default",
        "LOCAL_CACHE": "default",
        "SHARED_CACHE": "shared",
        "ENABLED": {"object": True, "transient": True},
    }

Every key is optional. ``build_redis_caches`` builds a matching production
``CACHES`` dict backed by django-redis.
"""

import os
from dataclasses import dataclass, field
from typing import Dict

from django.conf import settings

SETTINGS_NAME = "GROUP_CACHE"

DEFAULT_PREFIX = "group_cache"
DEFAULT_ALIAS = "default"
SHARED_ALIAS = "shared"


def _default_enabled() -> Dict[str, bool]:
    return {"object": True, "transient": True}


@dataclass(frozen=True)
class GroupCacheSettings:
    """Resolved ``GROUP_CACHE`` settings."""

    prefix: str = DEFAULT_PREFIX
    object_cache: str = DEFAULT_ALIAS
    local_cache: str = DEFAULT_ALIAS
    shared_cache: str = DEFAULT_ALIAS
    enabled: Dict[str, bool] = field(default_factory=_default_enabled)

    @property
    def aliases(self) -> Dict[str, str]:
        return {
            "OBJECT_CACHE": self.object_cache,
            "LOCAL_CACHE": self.local_cache,
            "SHARED_CACHE": self.shared_cache,
        }

    def is_enabled(self, category: str) -> bool:
        return bool(self.enabled.get(category, True))


def get_config() -> GroupCacheSettings:
    """
    Read ``GROUP_CACHE`` from Django settings.

    The prefix falls back to the ``GROUP_CACHE_PREFIX`` environment variable
    when not set explicitly.

    Raises:
        ValueError: If ``GROUP_CACHE`` is not a dict or the prefix is empty
    """
    raw = getattr(settings, SETTINGS_NAME, None) or {}
    if not isinstance(raw, dict):
        raise ValueError(
            f"{SETTINGS_NAME} must be a dict, got {type(raw).__name__}"
        )

    prefix = raw.get("PREFIX") or os.getenv("GROUP_CACHE_PREFIX", DEFAULT_PREFIX)
    if not isinstance(prefix, str) or not prefix:
        raise ValueError(f"{SETTINGS_NAME}['PREFIX'] must be a non-empty string")

    enabled = _default_enabled()
    enabled.update({str(k): bool(v) for k, v in (raw.get("ENABLED") or {}).items()})

    return GroupCacheSettings(
        prefix=prefix,
        object_cache=raw.get("OBJECT_CACHE", DEFAULT_ALIAS),
        local_cache=raw.get("LOCAL_CACHE", DEFAULT_ALIAS),
        shared_cache=raw.get("SHARED_CACHE", DEFAULT_ALIAS),
        enabled=enabled,
    )


def build_redis_caches() -> dict:
    """
    Build a production ``CACHES`` dict for use with the group cache.

    ``default`` holds object cache entries and local transients, ``shared``
    holds shared transients and may point at a different Redis instance.
    Version counters are stored without expiry, so the object cache should
    not run with an eviction policy that favours them.
    """
    redis_url = os.getenv("REDIS_URL", "redis://redis:6379/1")
    key_prefix = os.getenv("CACHE_KEY_PREFIX", DEFAULT_PREFIX)

    def _redis(location: str) -> dict:
        return {
            "BACKEND": "django_redis.cache.RedisCache",
            "LOCATION": location,
            "OPTIONS": {
                "CLIENT_CLASS": "django_redis.client.DefaultClient",
                "CONNECTION_POOL_KWARGS": {
                    "max_connections": 50,
                    "retry_on_timeout": True,
                },
                "SOCKET_CONNECT_TIMEOUT": 5,
                "SOCKET_TIMEOUT": 5,
            },
            "TIMEOUT": 300,
            "KEY_PREFIX": key_prefix,
        }

    return {
        DEFAULT_ALIAS: _redis(redis_url),
        SHARED_ALIAS: _redis(os.getenv("SHARED_REDIS_URL", redis_url)),
    }

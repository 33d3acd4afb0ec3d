"""
Django app configuration for the group cache.

Validates ``GROUP_CACHE`` against ``CACHES`` during Django startup so a
misnamed cache alias fails loudly instead of on the first cache call.
"""

import logging

from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

logger = logging.getLogger(__name__)


class GroupCacheConfig(AppConfig):
    """
    Configuration for the group cache Django app.

    This app provides:
    - Group scoped invalidation through per-group version counters
    - remember/forget helpers on the object cache
    - persist/cease helpers on the local and shared transient caches
    """

    name = 'group_cache'
    verbose_name = 'Group Cache'

    def ready(self):
        """
        Check that every cache alias named in ``GROUP_CACHE`` exists.

        Raises:
            ImproperlyConfigured: If ``GROUP_CACHE`` is invalid or names an
                alias missing from ``CACHES``
        """
        from group_cache.conf import get_config

        try:
            config = get_config()
        except ValueError as e:
            raise ImproperlyConfigured(str(e)) from e

        configured = set(getattr(settings, 'CACHES', {}) or {})
        for setting_name, alias in config.aliases.items():
            if alias not in configured:
                raise ImproperlyConfigured(
                    f"GROUP_CACHE['{setting_name}'] refers to cache alias "
                    f"'{alias}', which is not defined in CACHES"
                )

        logger.info(
            f"Group cache configured - prefix={config.prefix}, "
            f"object_cache={config.object_cache}, local_cache={config.local_cache}, "
            f"shared_cache={config.shared_cache}"
        )

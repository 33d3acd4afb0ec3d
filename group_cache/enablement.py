"""
Per-call cache enablement.

Caching can be switched off per category from settings
(``GROUP_CACHE["ENABLED"]``) or at runtime by connecting a receiver to the
``can_cache`` signal. Receivers get the category and the settings value and
return ``True``/``False`` to override it, or ``None`` to leave it alone. The
last non-``None`` response wins. A receiver that raises is logged and ignored.

Example Usage:
    >>> from django.dispatch import receiver
    >>> from group_cache.enablement import can_cache
    >>> @receiver(can_cache)
    ... def no_object_cache_in_debug(sender, category, enabled, **kwargs):
    ...     if settings.DEBUG and category == "object":
    ...         return False
"""

import logging

from django.dispatch import Signal

from group_cache.conf import get_config

logger = logging.getLogger(__name__)

OBJECT = "object"
TRANSIENT = "transient"

CATEGORIES = (OBJECT, TRANSIENT)

# Sent with ``category`` and ``enabled`` keyword arguments.
can_cache = Signal()


def default_can_cache(category: str = OBJECT) -> bool:
    """Resolve whether caching is enabled for a category."""
    enabled = get_config().is_enabled(category)

    for receiver, response in can_cache.send_robust(sender=None, category=category, enabled=enabled):
        if isinstance(response, Exception):
            logger.error(
                f"Cache enablement receiver failed - category={category}, "
                f"receiver={getattr(receiver, '__qualname__', receiver)}, error={str(response)}",
                exc_info=response
            )
        elif response is not None:
            enabled = bool(response)

    if not enabled:
        logger.debug(f"Cache disabled - category={category}, operation=can_cache")

    return enabled

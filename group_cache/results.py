"""
Error-shaped results for compute callbacks.

A callback passed to ``remember`` or ``persist`` can return a ``Failure``
instead of a payload. Failures are handed back to the caller untouched but
are never written to a cache, so a transient error is not memoized.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Failure:
    """
    Tagged failure value.

    Example Usage:
        >>> def load():
        ...     try:
        ...         return api.fetch()
        ...     except TimeoutError as e:
        ...         return Failure("timeout", str(e))
        >>> result = group_cache.remember("feed", load, group="feeds")
        >>> if is_failure(result):
        ...     handle(result.code)
    """

    code: str
    message: str = ""
    data: Any = None


def is_failure(value: Any) -> bool:
    """True for ``Failure`` instances and for returned (not raised) exceptions."""
    return isinstance(value, (Failure, BaseException))

"""
In-process counters for the group cache.

Everything is aggregated as it arrives, so memory stays flat no matter how
many calls go through the cache:

- per group (including the ``transient:<scope>`` pseudo-groups the facade
  reports transient reads under): hits, misses, invalidations, errors and a
  latency summary
- per operation (``read``, ``write``, ``invalidate``, ``transient_read``...):
  a latency summary and an error count

Groups past ``max_groups`` are folded into ``OVERFLOW_GROUP`` so a caller
using unbounded group names cannot grow the table without limit.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_GROUPS = 1000
OVERFLOW_GROUP = "_overflow"


@dataclass
class LatencySummary:
    """Running count/sum/max of durations in milliseconds."""

    count: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0

    def add(self, elapsed_ms: float) -> None:
        self.count += 1
        self.total_ms += elapsed_ms
        if elapsed_ms > self.max_ms:
            self.max_ms = elapsed_ms

    @property
    def avg_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0


@dataclass
class GroupCounters:
    hits: int = 0
    misses: int = 0
    invalidations: int = 0
    errors: int = 0
    latency: LatencySummary = field(default_factory=LatencySummary)

    @property
    def hit_rate(self) -> float:
        reads = self.hits + self.misses
        return self.hits / reads if reads else 0.0

    def as_dict(self) -> Dict[str, float]:
        return {
            'hits': self.hits,
            'misses': self.misses,
            'invalidations': self.invalidations,
            'errors': self.errors,
            'hit_rate': self.hit_rate,
            'avg_latency_ms': self.latency.avg_ms,
            'max_latency_ms': self.latency.max_ms,
        }


class CacheMetrics:
    """
    Hit/miss/invalidation/error counters and latency summaries per group.

    Not synchronized: under threads the counts are best-effort.

    Example Usage:
        >>> metrics = CacheMetrics()
        >>> with metrics.timed('read', group="myapp_posts"):
        ...     metrics.hit("myapp_posts")
        >>> metrics.group_stats("myapp_posts")["hit_rate"]
        1.0
    """

    def __init__(self, max_groups: int = DEFAULT_MAX_GROUPS):
        self.max_groups = max_groups
        self._groups: Dict[str, GroupCounters] = {}
        self._latency: Dict[str, LatencySummary] = {}
        self._errors: Dict[str, int] = {}

    def hit(self, group: str) -> None:
        self._counters(group).hits += 1

    def miss(self, group: str) -> None:
        self._counters(group).misses += 1

    def invalidated(self, group: str) -> None:
        self._counters(group).invalidations += 1

    def failed(self, operation: str, group: Optional[str] = None) -> None:
        """Count a backend error for an operation, and its group if known."""
        self._errors[operation] = self._errors.get(operation, 0) + 1
        if group is not None:
            self._counters(group).errors += 1

    @contextmanager
    def timed(self, operation: str, group: Optional[str] = None):
        """Add the duration of the block to the operation (and group) summary."""
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            self._latency.setdefault(operation, LatencySummary()).add(elapsed_ms)
            if group is not None:
                self._counters(group).latency.add(elapsed_ms)

    def group_stats(self, group: str) -> Dict[str, float]:
        """Counters of one group; all zero for a group never seen."""
        counters = self._groups.get(group)
        return (counters or GroupCounters()).as_dict()

    def snapshot(self) -> Dict[str, Any]:
        return {
            'groups': {name: counters.as_dict() for name, counters in self._groups.items()},
            'latency': {
                operation: {'count': s.count, 'avg_ms': s.avg_ms, 'max_ms': s.max_ms}
                for operation, s in self._latency.items()
            },
            'errors': dict(self._errors),
        }

    def reset(self) -> None:
        self._groups.clear()
        self._latency.clear()
        self._errors.clear()
        logger.info("Cache metrics reset")

    def export_prometheus(self) -> str:
        """Render the counters in Prometheus text exposition format."""
        lines = [
            "# HELP group_cache_reads_total Versioned and transient reads by result",
            "# TYPE group_cache_reads_total counter",
        ]
        for name, counters in sorted(self._groups.items()):
            lines.append(f'group_cache_reads_total{{group="{name}",result="hit"}} {counters.hits}')
            lines.append(f'group_cache_reads_total{{group="{name}",result="miss"}} {counters.misses}')

        lines += [
            "# HELP group_cache_invalidations_total Group version bumps",
            "# TYPE group_cache_invalidations_total counter",
        ]
        for name, counters in sorted(self._groups.items()):
            if counters.invalidations:
                lines.append(f'group_cache_invalidations_total{{group="{name}"}} {counters.invalidations}')

        lines += [
            "# HELP group_cache_errors_total Backend errors absorbed by the cache",
            "# TYPE group_cache_errors_total counter",
        ]
        for operation, count in sorted(self._errors.items()):
            lines.append(f'group_cache_errors_total{{operation="{operation}"}} {count}')

        lines += [
            "# HELP group_cache_latency_ms Backend call latency in milliseconds",
            "# TYPE group_cache_latency_ms summary",
        ]
        for operation, summary in sorted(self._latency.items()):
            lines.append(f'group_cache_latency_ms_sum{{operation="{operation}"}} {summary.total_ms:.3f}')
            lines.append(f'group_cache_latency_ms_count{{operation="{operation}"}} {summary.count}')

        return '\n'.join(lines) + '\n'

    def _counters(self, group: str) -> GroupCounters:
        counters = self._groups.get(group)
        if counters is None:
            if len(self._groups) >= self.max_groups:
                group = OVERFLOW_GROUP
                counters = self._groups.get(group)
            if counters is None:
                counters = self._groups[group] = GroupCounters()
        return counters


cache_metrics = CacheMetrics()

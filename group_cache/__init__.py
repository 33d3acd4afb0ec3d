"""
Group cache for Django.

Adds group scoped invalidation (per-group version counters, O(1) invalidation)
and compute-or-fetch helpers on top of Django cache backends.
"""

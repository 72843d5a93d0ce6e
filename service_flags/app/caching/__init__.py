"""
Flag service caching package.

Holds the in-process flag cache used to avoid re-evaluating a flag on every
request. Entries expire by age only; there is no explicit invalidation.
"""

from .flag_cache import CacheEntry, FlagCache, DEFAULT_FLAG_TTL_SECONDS

__all__ = [
    "CacheEntry",
    "DEFAULT_FLAG_TTL_SECONDS",
    "FlagCache",
]

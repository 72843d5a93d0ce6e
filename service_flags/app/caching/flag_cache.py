"""
In-process TTL cache for boolean feature flag results.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from shared.logging import get_logger


DEFAULT_FLAG_TTL_SECONDS = 60.0


@dataclass(frozen=True)
class CacheEntry:
    """A cached flag value and the clock reading when it was recorded."""

    value: bool
    recorded_at: float


class FlagCache:
    """Time-bounded, thread-safe cache of flag results.

    Expiry is enforced lazily: ``get`` treats an entry older than the TTL as
    absent and evicts it. There is no background sweep and no size bound.

    Each ``get``/``set`` is atomic under a single internal lock. A caller's
    ``get`` followed by ``set`` is not: two concurrent misses may both evaluate
    the flag and both write, in which case the last write wins.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_FLAG_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds < 0:
            raise ValueError(f"ttl_seconds must be non-negative, got {ttl_seconds}")

        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self.logger = get_logger("flags.cache")

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def set(self, key: str, value: bool) -> None:
        """Store ``value`` for ``key``, replacing any previous entry."""
        with self._lock:
            self._entries[key] = CacheEntry(value=bool(value), recorded_at=self._clock())

    def get(self, key: str) -> Optional[bool]:
        """Return the cached value for ``key``, or None if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            age = self._clock() - entry.recorded_at
            if age <= self._ttl:
                return entry.value

            del self._entries[key]

        self.logger.debug("Evicted stale flag entry", key=key, age_seconds=round(age, 3))
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

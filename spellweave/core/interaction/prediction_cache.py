"""
Prediction Cache — TTL Memo for Learned-Path Results
======================================================
The InteractionCache memoizes rules + plugins forever; this cache sits on
top of the ensemble and memoizes what the trained model adds (confidence
adjustments and raw estimates).

Keying:
  (kind, CacheKey, model version)   kind = "predict" | "estimate"

Lifetime:
  - entries expire ttl_seconds after they were stored (default 24 h)
  - the ensemble calls invalidate() whenever it publishes or drops a model,
    so a result is never served for a snapshot other than the one that made it
  - at max_entries, expired entries are purged first, then the oldest go
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

from .cache import CacheKey

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60
DEFAULT_MAX_ENTRIES = 10_000

_EntryKey = Tuple[str, CacheKey, Hashable]


class PredictionCache:

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        if max_entries <= 0:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        # value, stored_at; insertion order doubles as age order
        self._entries: Dict[_EntryKey, Tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._expirations = 0

    def get(self, kind: str, key: CacheKey, version: Hashable) -> Optional[Any]:
        entry_key = (kind, key, version)
        with self._lock:
            entry = self._entries.get(entry_key)
            if entry is None:
                self._misses += 1
                return None
            value, stored_at = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._entries[entry_key]
                self._expirations += 1
                self._misses += 1
                return None
            self._hits += 1
            return value

    def put(self, kind: str, key: CacheKey, version: Hashable, value: Any) -> None:
        entry_key = (kind, key, version)
        with self._lock:
            self._entries.pop(entry_key, None)
            if len(self._entries) >= self.max_entries:
                self._purge_expired_locked()
            while len(self._entries) >= self.max_entries:
                self._entries.pop(next(iter(self._entries)))
            self._entries[entry_key] = (value, self._clock())

    def invalidate(self) -> int:
        with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
        if dropped:
            logger.info(f"Prediction cache invalidated ({dropped} entries)")
        return dropped

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge_expired_locked()

    def _purge_expired_locked(self) -> int:
        now = self._clock()
        expired = [k for k, (_, stored_at) in self._entries.items() if now - stored_at >= self.ttl_seconds]
        for k in expired:
            del self._entries[k]
        self._expirations += len(expired)
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            now = self._clock()
            ages = [now - stored_at for _, stored_at in self._entries.values()]
            return {
                "total_entries": len(ages),
                "active_entries": sum(1 for age in ages if age < self.ttl_seconds),
                "oldest_entry_age": round(max(ages), 3) if ages else 0.0,
                "ttl_seconds": self.ttl_seconds,
                "hits": self._hits,
                "misses": self._misses,
                "expirations": self._expirations,
            }

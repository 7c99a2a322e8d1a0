# ==========================
# Cache Service
# ==========================
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

@dataclass
class CacheEntry:
    data: Any
    timestamp: float

class TTLCache:
    """
    Last-good-response store keyed by token address

    get() honours the TTL; get_stale() ignores it and is only meant for
    failure recovery (429 or upstream errors). Capacity is bounded by
    write recency: on overflow the oldest written entries are dropped.
    """

    def __init__(
        self,
        ttl_seconds: float = 5.0,
        max_entries: int = 100,
        clock: Callable[[], float] = time.monotonic
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value if it is younger than the TTL"""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.timestamp < self.ttl_seconds:
                return entry.data
            return None

    def get_stale(self, key: str) -> Optional[Any]:
        """Return the most recent value regardless of age"""
        with self._lock:
            entry = self._entries.get(key)
            return entry.data if entry is not None else None

    def put(self, key: str, data: Any):
        """Store a value; last writer wins"""
        with self._lock:
            self._entries[key] = CacheEntry(data=data, timestamp=self._clock())
            self._entries.move_to_end(key)

            evicted = 0
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
                evicted += 1

        if evicted:
            logger.debug(f"[CACHE] Evicted {evicted} entries (capacity {self.max_entries})")

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'entries': len(self._entries),
                'max_entries': self.max_entries,
                'ttl_seconds': self.ttl_seconds
            }

"""Generic TTL cache."""
import time
import threading
from dataclasses import dataclass
from typing import Any


@dataclass
class CacheEntry:
    data: Any
    written_at: float
    expires_at: float

    def is_expired(self, now=None):
        return (now if now is not None else time.time()) >= self.expires_at


class TTLCache:
    """Thread-safe key-value cache with per-key TTL.

    Expired entries are never returned: they are dropped on access, and
    `purge_expired` sweeps the rest.
    """

    def __init__(self, clock=time.time):
        self._store = {}
        self._lock = threading.Lock()
        self._clock = clock
        self.hits = 0
        self.misses = 0

    def get(self, key):
        """Get value if exists and not expired."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self.misses += 1
                return None
            if entry.is_expired(self._clock()):
                del self._store[key]
                self.misses += 1
                return None
            self.hits += 1
            return entry.data

    def get_entry(self, key):
        """Get the full CacheEntry (or None) without touching hit counters."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None or entry.is_expired(self._clock()):
                return None
            return entry

    def set(self, key, value, ttl=300):
        """Set key with TTL in seconds."""
        now = self._clock()
        with self._lock:
            self._store[key] = CacheEntry(data=value, written_at=now, expires_at=now + ttl)

    def invalidate(self, key):
        """Remove a specific key."""
        with self._lock:
            self._store.pop(key, None)

    def keys(self):
        with self._lock:
            now = self._clock()
            return [k for k, e in self._store.items() if not e.is_expired(now)]

    def purge_expired(self):
        """Drop every expired entry, returning how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._store.items() if e.is_expired(now)]
            for key in expired:
                del self._store[key]
            return len(expired)

    def clear(self):
        """Remove all entries."""
        with self._lock:
            self._store.clear()

    def stats(self):
        with self._lock:
            lookups = self.hits + self.misses
            return {
                "entries": len(self._store),
                "hits": self.hits,
                "misses": self.misses,
                "hit_rate": self.hits / lookups if lookups else 0.0,
            }

    def __len__(self):
        with self._lock:
            return len(self._store)

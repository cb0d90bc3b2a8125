import enum
import threading
import time
from collections import OrderedDict
from typing import Callable, Final, Literal


class _Missing(enum.Enum):
    MISSING = "MISSING"

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Final = _Missing.MISSING
"""Returned by `SimpleCache.get` on a miss. A cached `None` is a hit."""

Missing = Literal[_Missing.MISSING]


class CacheMetrics:
    """Thread-safe cache metrics tracker."""

    hits: int
    misses: int
    evictions: int
    expirations: int
    _lock: threading.Lock

    def __init__(self):
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.expirations = 0

    def record_hit(self):
        with self._lock:
            self.hits += 1

    def record_miss(self):
        with self._lock:
            self.misses += 1

    def record_eviction(self):
        with self._lock:
            self.evictions += 1

    def record_expiration(self):
        with self._lock:
            self.expirations += 1

    def hit_rate(self) -> float:
        """Return cache hit rate as percentage (0-100)."""
        with self._lock:
            total = self.hits + self.misses
            if total == 0:
                return 0.0
            return (self.hits / total) * 100


class SimpleCache[VT, *KTs]:
    """In-memory TTL cache keyed by a tuple of values.

    Values may be `None`; a stored `None` is returned as a hit so negative
    results short-circuit like positive ones. Misses return `MISSING`.
    Entries are expired lazily on read and removed when found stale.
    """

    _cache: OrderedDict[tuple[*KTs], tuple[float, VT]]
    _lock: threading.Lock
    _maxsize: int | None
    _metrics: CacheMetrics
    _clock: Callable[[], float]

    def __init__(
        self,
        maxsize: int | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize cache with optional size limit.

        Args:
            maxsize: Maximum number of entries. None = unlimited. Uses LRU eviction.
            clock: Source of the current time in seconds.
        """
        self._cache = OrderedDict()
        self._lock = threading.Lock()
        self._maxsize = maxsize
        self._metrics = CacheMetrics()
        self._clock = clock

    def get(self, ttl: float, *key: *KTs) -> VT | Missing:
        with self._lock:
            hit = self._cache.get(key)
            if hit is None:
                self._metrics.record_miss()
                return MISSING
            written_at, value = hit
            if self._clock() - written_at > ttl:
                del self._cache[key]
                self._metrics.record_expiration()
                self._metrics.record_miss()
                return MISSING
            self._cache.move_to_end(key)
            self._metrics.record_hit()
            return value

    def set(self, value: VT, *key: *KTs):
        with self._lock:
            if key in self._cache:
                del self._cache[key]

            self._cache[key] = (self._clock(), value)

            if self._maxsize is not None and len(self._cache) > self._maxsize:
                oldest_key = next(iter(self._cache))
                del self._cache[oldest_key]
                self._metrics.record_eviction()

    def get_metrics(self) -> CacheMetrics:
        """Return the metrics tracker for this cache."""
        return self._metrics

    def size(self) -> int:
        """Return current number of entries in cache."""
        with self._lock:
            return len(self._cache)

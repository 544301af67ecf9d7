"""In-process TTL cache with single-flight loading.

Concurrent misses on the same key share one loader call. When the loader
raises ``UpstreamUnavailable`` every waiter receives the caller-supplied
default and nothing is stored, so the next ``get`` retries upstream.
"""
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Hashable, Mapping, Optional

from .config import DEFAULT_TTLS
from .errors import UpstreamUnavailable

logger = logging.getLogger(__name__)


class CacheKind(str, Enum):
    TOP_SCORERS = 'top_scorers'
    ROSTER = 'roster'
    SEARCH = 'search'
    TEAM_SCHEDULE = 'team_schedule'
    PLAYER_WINDOW = 'player_window'
    GOALIE_WINDOW = 'goalie_window'


@dataclass(frozen=True)
class CacheKey:
    kind: CacheKind
    ident: Hashable
    start: Optional[str] = None
    end: Optional[str] = None


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    upstream_calls: int = 0
    failures: int = 0
    size: int = 0


@dataclass
class _Entry:
    value: Any
    expires_at: float


class _Flight:
    def __init__(self):
        self.done = threading.Event()
        self.value: Any = None
        self.failed = False
        self.error: Optional[BaseException] = None


class StatsCache:
    def __init__(self, ttls: Optional[Mapping[str, float]] = None, clock: Callable[[], float] = time.monotonic):
        self.ttls: Dict[str, float] = dict(DEFAULT_TTLS)
        if ttls:
            self.ttls.update(ttls)
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[CacheKey, _Entry] = {}
        self._flights: Dict[CacheKey, _Flight] = {}
        self._stats = CacheStats()

    def ttl_for(self, kind: CacheKind) -> float:
        return float(self.ttls[kind.value])

    def get(self, key: CacheKey, loader: Callable[[], Any], default: Callable[[], Any]) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                if entry.expires_at > self._clock():
                    self._stats.hits += 1
                    return entry.value
                del self._entries[key]
            self._stats.misses += 1
            flight = self._flights.get(key)
            leader = flight is None
            if leader:
                flight = _Flight()
                self._flights[key] = flight

        if not leader:
            logger.debug("waiting on in-flight load for %s", key)
            flight.done.wait()
            return self._result(flight, default)

        try:
            self._load(key, loader, flight)
        finally:
            with self._lock:
                self._flights.pop(key, None)
            flight.done.set()
        return self._result(flight, default)

    def _load(self, key: CacheKey, loader: Callable[[], Any], flight: _Flight) -> None:
        with self._lock:
            self._stats.upstream_calls += 1
        try:
            value = loader()
        except UpstreamUnavailable as exc:
            logger.warning("upstream unavailable for %s: %s", key, exc)
            flight.failed = True
            with self._lock:
                self._stats.failures += 1
            return
        except Exception as exc:
            flight.error = exc
            raise
        flight.value = value
        now = self._clock()
        with self._lock:
            # expired entries are dropped on every insert
            self._sweep(now)
            self._entries[key] = _Entry(value, now + self.ttl_for(key.kind))

    @staticmethod
    def _result(flight: _Flight, default: Callable[[], Any]) -> Any:
        if flight.error is not None:
            raise flight.error
        if flight.failed:
            return default()
        return flight.value

    def invalidate(self, key: CacheKey) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            return self._sweep(now)

    def _sweep(self, now: float) -> int:
        stale = [k for k, e in self._entries.items() if e.expires_at <= now]
        for k in stale:
            del self._entries[k]
        return len(stale)

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._stats.hits,
                misses=self._stats.misses,
                upstream_calls=self._stats.upstream_calls,
                failures=self._stats.failures,
                size=len(self._entries),
            )

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Sized
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Literal, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class TtlPolicy:
    seconds: float | None

    @classmethod
    def fixed(cls, seconds: float) -> "TtlPolicy":
        if seconds <= 0:
            raise ValueError("ttl seconds must be positive")
        return cls(seconds=float(seconds))

    def expires_at(self, now: float) -> float | None:
        if self.seconds is None:
            return None
        return now + self.seconds


NO_EXPIRY = TtlPolicy(seconds=None)


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    expires_at: float | None

    def is_live(self, now: float) -> bool:
        return self.expires_at is None or self.expires_at > now


@dataclass(frozen=True)
class CacheLookup:
    state: Literal["absent", "expired", "live"]
    value: Any = None

    @property
    def is_live(self) -> bool:
        return self.state == "live"


def is_empty_result(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, Sized) and len(value) == 0


class SingleFlightCache:
    """Keyed TTL cache that coalesces concurrent computations per key.

    Only the check-and-set of the in-flight marker happens under the lock;
    computations run outside it so unrelated keys never wait on each other.
    """

    def __init__(
        self,
        *,
        cache_empty_results: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._cache_empty_results = cache_empty_results
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, CacheEntry] = {}
        self._in_flight: dict[str, Future] = {}
        self._counters = {"hits": 0, "misses": 0, "coalesced": 0, "failures": 0}

    def lookup(self, key: str) -> CacheLookup:
        with self._lock:
            return self._lookup_locked(key)

    def _lookup_locked(self, key: str) -> CacheLookup:
        entry = self._entries.get(key)
        if entry is None:
            return CacheLookup(state="absent")
        if not entry.is_live(self._clock()):
            self._entries.pop(key, None)
            return CacheLookup(state="expired")
        return CacheLookup(state="live", value=entry.value)

    def get_or_compute(self, key: str, ttl: TtlPolicy, compute: Callable[[], T]) -> T:
        with self._lock:
            hit = self._lookup_locked(key)
            if hit.is_live:
                self._counters["hits"] += 1
                return hit.value
            pending = self._in_flight.get(key)
            if pending is None:
                pending = Future()
                self._in_flight[key] = pending
                self._counters["misses"] += 1
                owner = True
            else:
                self._counters["coalesced"] += 1
                owner = False

        if not owner:
            logger.debug("cache_wait_in_flight key=%s", key)
            return pending.result()

        logger.info("cache_compute_start key=%s previous=%s", key, hit.state)
        started = self._clock()
        try:
            value = compute()
        except BaseException as exc:
            with self._lock:
                self._in_flight.pop(key, None)
                self._counters["failures"] += 1
            logger.warning("cache_compute_failed key=%s error=%s", key, exc)
            pending.set_exception(exc)
            raise

        stored = self._cache_empty_results or not is_empty_result(value)
        with self._lock:
            if stored:
                self._entries[key] = CacheEntry(key=key, value=value, expires_at=ttl.expires_at(self._clock()))
            self._in_flight.pop(key, None)
        logger.info(
            "cache_compute_done key=%s stored=%s elapsed_sec=%.3f",
            key,
            stored,
            self._clock() - started,
        )
        pending.set_result(value)
        return value

    def invalidate(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if not entry.is_live(now)]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def close(self) -> None:
        self.clear()

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                **self._counters,
                "entries": len(self._entries),
                "in_flight": len(self._in_flight),
            }

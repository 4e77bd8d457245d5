from __future__ import annotations

import threading
import time

import pytest

from app.services.single_flight_cache import NO_EXPIRY, SingleFlightCache, TtlPolicy


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _wait_until(predicate, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached before timeout")
        time.sleep(0.005)


def test_concurrent_callers_share_one_computation():
    cache = SingleFlightCache()
    release = threading.Event()
    calls = {"count": 0}

    def compute():
        calls["count"] += 1
        release.wait(timeout=5)
        return ["payload"]

    results = []
    threads = [
        threading.Thread(target=lambda: results.append(cache.get_or_compute("k", NO_EXPIRY, compute)))
        for _ in range(8)
    ]
    for thread in threads:
        thread.start()

    _wait_until(lambda: cache.stats()["coalesced"] == 7)
    release.set()
    for thread in threads:
        thread.join(timeout=5)

    assert calls["count"] == 1
    assert len(results) == 8
    assert all(result is results[0] for result in results)
    assert cache.stats()["in_flight"] == 0


def test_unrelated_keys_do_not_wait_on_each_other():
    cache = SingleFlightCache()
    release = threading.Event()

    def slow():
        release.wait(timeout=5)
        return "slow"

    worker = threading.Thread(target=lambda: cache.get_or_compute("slow", NO_EXPIRY, slow))
    worker.start()
    _wait_until(lambda: cache.stats()["in_flight"] == 1)

    assert cache.get_or_compute("fast", NO_EXPIRY, lambda: "fast") == "fast"

    release.set()
    worker.join(timeout=5)


def test_cached_value_served_until_ttl_elapses():
    clock = FakeClock()
    cache = SingleFlightCache(clock=clock)
    calls = {"count": 0}

    def compute():
        calls["count"] += 1
        return {"version": calls["count"]}

    first = cache.get_or_compute("k", TtlPolicy.fixed(60), compute)
    clock.advance(59)
    second = cache.get_or_compute("k", TtlPolicy.fixed(60), compute)
    assert second is first
    assert calls["count"] == 1

    clock.advance(2)
    assert cache.lookup("k").state == "expired"
    third = cache.get_or_compute("k", TtlPolicy.fixed(60), compute)
    assert third == {"version": 2}
    assert calls["count"] == 2


def test_no_expiry_entry_survives_clock_advance():
    clock = FakeClock()
    cache = SingleFlightCache(clock=clock)
    cache.get_or_compute("k", NO_EXPIRY, lambda: [1])
    clock.advance(10**9)
    assert cache.lookup("k").state == "live"


def test_failure_clears_in_flight_marker_and_next_call_retries():
    cache = SingleFlightCache()
    calls = {"count": 0}

    def flaky():
        calls["count"] += 1
        if calls["count"] == 1:
            raise RuntimeError("upstream down")
        return ["ok"]

    with pytest.raises(RuntimeError):
        cache.get_or_compute("k", NO_EXPIRY, flaky)
    assert cache.lookup("k").state == "absent"
    assert cache.stats()["in_flight"] == 0
    assert cache.stats()["failures"] == 1

    assert cache.get_or_compute("k", NO_EXPIRY, flaky) == ["ok"]
    assert calls["count"] == 2


def test_failure_reaches_every_waiter():
    cache = SingleFlightCache()
    release = threading.Event()
    errors = []

    def failing():
        release.wait(timeout=5)
        raise ValueError("bad payload")

    def call():
        try:
            cache.get_or_compute("k", NO_EXPIRY, failing)
        except ValueError as exc:
            errors.append(exc)

    threads = [threading.Thread(target=call) for _ in range(4)]
    for thread in threads:
        thread.start()
    _wait_until(lambda: cache.stats()["coalesced"] == 3)
    release.set()
    for thread in threads:
        thread.join(timeout=5)

    assert len(errors) == 4


@pytest.mark.parametrize("empty", [None, [], {}, ""])
def test_empty_results_are_not_cached_by_default(empty):
    cache = SingleFlightCache()
    calls = {"count": 0}

    def compute():
        calls["count"] += 1
        return empty

    cache.get_or_compute("k", NO_EXPIRY, compute)
    cache.get_or_compute("k", NO_EXPIRY, compute)

    assert calls["count"] == 2
    assert cache.lookup("k").state == "absent"


def test_empty_results_cached_when_enabled():
    cache = SingleFlightCache(cache_empty_results=True)
    calls = {"count": 0}

    def compute():
        calls["count"] += 1
        return []

    cache.get_or_compute("k", NO_EXPIRY, compute)
    cache.get_or_compute("k", NO_EXPIRY, compute)

    assert calls["count"] == 1
    lookup = cache.lookup("k")
    assert lookup.state == "live"
    assert lookup.value == []


def test_sweep_and_invalidate():
    clock = FakeClock()
    cache = SingleFlightCache(clock=clock)
    cache.get_or_compute("short", TtlPolicy.fixed(5), lambda: [1])
    cache.get_or_compute("long", NO_EXPIRY, lambda: [2])
    clock.advance(10)

    assert cache.sweep() == 1
    assert cache.stats()["entries"] == 1
    assert cache.invalidate("long") is True
    assert cache.invalidate("long") is False


def test_fixed_ttl_rejects_non_positive_seconds():
    with pytest.raises(ValueError):
        TtlPolicy.fixed(0)

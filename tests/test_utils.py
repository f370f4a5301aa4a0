"""Cache, circuit breaker, retry policy, dates, distributions, logging."""
from __future__ import annotations

import asyncio
import json
import logging
from datetime import date, datetime, timezone

import pytest

from conftest import FakeClock, no_sleep
from mto.utils.api_cache import TTLCache
from mto.utils.circuit_breaker import (
    BreakerConfig,
    BreakerRegistry,
    BreakerState,
    CircuitBreaker,
    CircuitOpenError,
)
from mto.utils.dates import DateWindow, local_day_window, parse_iso_date, resolve_zone
from mto.utils.distributions import population_std, z_for_quantile
from mto.utils.logging import PACKAGE_LOGGER, JSONFormatter, get_logger
from mto.utils.retry import RetryPolicy


class TestTTLCache:
    def test_set_get_and_expire(self, clock):
        cache = TTLCache(ttl_seconds=120, clock=clock)
        cache.set("k1", {"v": 1}, source="espn")
        assert cache.get("k1") == {"v": 1}

        clock.advance(119.9)
        assert cache.get("k1") == {"v": 1}
        clock.advance(0.2)
        assert cache.get("k1") is None
        assert len(cache) == 0

    def test_per_entry_ttl(self, clock):
        cache = TTLCache(ttl_seconds=600, clock=clock)
        cache.set("short", 1, ttl_seconds=10)
        clock.advance(11)
        assert cache.get("short") is None

    @pytest.mark.asyncio
    async def test_get_or_fetch_uses_cache(self, clock):
        cache = TTLCache(ttl_seconds=60, clock=clock)
        calls = {"n": 0}

        async def fetch_fn():
            calls["n"] += 1
            return {"data": calls["n"]}

        assert await cache.get_or_fetch("k2", fetch_fn, source="engine") == {"data": 1}
        assert await cache.get_or_fetch("k2", fetch_fn, source="engine") == {"data": 1}
        assert calls["n"] == 1

        assert await cache.get_or_fetch("k2", fetch_fn, force_refresh=True) == {"data": 2}
        clock.advance(61)
        assert await cache.get_or_fetch("k2", fetch_fn) == {"data": 3}

    @pytest.mark.asyncio
    async def test_should_cache_predicate(self, clock):
        cache = TTLCache(ttl_seconds=60, clock=clock)

        async def failing():
            return {"ok": False}

        await cache.get_or_fetch("k", failing, should_cache=lambda v: v["ok"])
        assert cache.get("k") is None

    def test_evict_and_stats(self, clock):
        cache = TTLCache(ttl_seconds=60, name="feeds", clock=clock)
        cache.set("a", 1, source="espn")
        cache.set("b", 2, source="espn")
        cache.set("c", 3, source="the_odds")
        cache.get("a")
        cache.get("missing")

        stats = cache.get_stats()
        assert stats["name"] == "feeds"
        assert stats["entries"] == 3
        assert stats["by_source"] == {"espn": 2, "the_odds": 1}
        assert (stats["hits"], stats["misses"]) == (1, 1)

        assert cache.evict("c") is True
        assert cache.evict("c") is False
        assert cache.evict_source("espn") == 2
        cache.set("d", 4)
        assert cache.clear_all() == 1

    def test_negative_ttl(self):
        with pytest.raises(ValueError):
            TTLCache(ttl_seconds=-1)


class TestCircuitBreaker:
    @staticmethod
    async def _fail():
        raise RuntimeError("boom")

    @staticmethod
    async def _ok():
        return "ok"

    @pytest.mark.asyncio
    async def test_opens_then_half_opens_then_closes(self, clock):
        breaker = CircuitBreaker("espn:NBA", BreakerConfig(failure_threshold=2, cooldown_seconds=30), clock=clock)

        for _ in range(2):
            with pytest.raises(RuntimeError):
                await breaker.call_async(self._fail)
        assert breaker.state == BreakerState.OPEN

        with pytest.raises(CircuitOpenError):
            await breaker.call_async(self._ok)
        assert breaker.get_stats()["rejected"] == 1

        clock.advance(30)
        assert await breaker.call_async(self._ok) == "ok"
        assert breaker.state == BreakerState.CLOSED

    @pytest.mark.asyncio
    async def test_failed_probe_reopens(self, clock):
        breaker = CircuitBreaker("x", BreakerConfig(failure_threshold=1, cooldown_seconds=5), clock=clock)
        with pytest.raises(RuntimeError):
            await breaker.call_async(self._fail)
        clock.advance(5)
        with pytest.raises(RuntimeError):
            await breaker.call_async(self._fail)
        assert breaker.state == BreakerState.OPEN
        assert breaker.get_stats()["probe_in_flight"] is False

    @pytest.mark.asyncio
    async def test_half_open_admits_a_single_probe(self, clock):
        breaker = CircuitBreaker("espn:NBA", BreakerConfig(failure_threshold=1, cooldown_seconds=10), clock=clock)
        with pytest.raises(RuntimeError):
            await breaker.call_async(self._fail)
        clock.advance(10)

        release = asyncio.Event()
        upstream_calls = 0

        async def slow_ok():
            nonlocal upstream_calls
            upstream_calls += 1
            await release.wait()
            return "ok"

        probe = asyncio.create_task(breaker.call_async(slow_ok))
        await asyncio.sleep(0)
        outcomes = await asyncio.gather(
            *(breaker.call_async(slow_ok) for _ in range(4)), return_exceptions=True
        )
        assert all(isinstance(o, CircuitOpenError) for o in outcomes)
        assert breaker.state == BreakerState.HALF_OPEN

        release.set()
        assert await probe == "ok"
        assert upstream_calls == 1
        assert breaker.state == BreakerState.CLOSED
        assert await breaker.call_async(self._ok) == "ok"

    @pytest.mark.asyncio
    async def test_cancelled_probe_frees_the_slot(self, clock):
        breaker = CircuitBreaker("x", BreakerConfig(failure_threshold=1, cooldown_seconds=5), clock=clock)
        with pytest.raises(RuntimeError):
            await breaker.call_async(self._fail)
        clock.advance(5)

        probe = asyncio.create_task(breaker.call_async(asyncio.sleep, 60))
        await asyncio.sleep(0)
        probe.cancel()
        with pytest.raises(asyncio.CancelledError):
            await probe

        assert breaker.state == BreakerState.HALF_OPEN
        assert await breaker.call_async(self._ok) == "ok"
        assert breaker.state == BreakerState.CLOSED

        assert breaker.state == BreakerState.OPEN

    @pytest.mark.asyncio
    async def test_unexpected_exceptions_do_not_count(self, clock):
        breaker = CircuitBreaker(
            "x", BreakerConfig(failure_threshold=1, counted=ValueError), clock=clock
        )
        with pytest.raises(RuntimeError):
            await breaker.call_async(self._fail)
        assert breaker.state == BreakerState.CLOSED

    def test_registry_is_keyed_by_source_and_sport(self):
        registry = BreakerRegistry()
        assert registry.get("espn", "NBA") is registry.get("espn", "NBA")
        assert registry.get("espn", "NBA") is not registry.get("espn", "NFL")
        assert set(registry.get_stats()) == {"espn:NBA", "espn:NFL"}

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            BreakerConfig(failure_threshold=0)


class TestRetryPolicy:
    def test_backoff_is_linear(self):
        policy = RetryPolicy(attempts=3, backoff_seconds=0.4)
        assert [policy.backoff(n) for n in (1, 2, 3)] == pytest.approx([0.4, 0.8, 1.2])

    @pytest.mark.asyncio
    async def test_retries_only_retryable_errors(self):
        delays = []

        async def record_sleep(seconds):
            delays.append(seconds)

        policy = RetryPolicy(attempts=3, backoff_seconds=0.3, retry_on=(ConnectionError,), sleep=record_sleep)
        calls = {"n": 0}

        async def flaky():
            calls["n"] += 1
            if calls["n"] < 3:
                raise ConnectionError("reset")
            return "done"

        assert await policy.run(flaky) == "done"
        assert calls["n"] == 3
        assert delays == pytest.approx([0.3, 0.6])

    @pytest.mark.asyncio
    async def test_non_retryable_raises_immediately(self):
        policy = RetryPolicy(attempts=5, retry_on=(ConnectionError,), sleep=no_sleep)
        calls = {"n": 0}

        async def bad():
            calls["n"] += 1
            raise KeyError("nope")

        with pytest.raises(KeyError):
            await policy.run(bad)
        assert calls["n"] == 1

    @pytest.mark.asyncio
    async def test_last_error_is_reraised(self):
        policy = RetryPolicy(attempts=2, retry_on=(ConnectionError,), sleep=no_sleep)

        async def down():
            raise ConnectionError("down")

        with pytest.raises(ConnectionError):
            await policy.run(down)

    def test_invalid_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(attempts=0)


class TestDates:
    def test_new_york_winter_window(self):
        window = local_day_window("2025-01-15", "America/New_York")
        assert window.start_utc == datetime(2025, 1, 15, 5, tzinfo=timezone.utc)
        assert window.end_utc == datetime(2025, 1, 16, 5, tzinfo=timezone.utc)
        assert window.utc_dates() == [date(2025, 1, 15), date(2025, 1, 16)]

    def test_dst_day_is_23_hours(self):
        window = local_day_window("2025-03-09", "America/New_York")
        assert (window.end_utc - window.start_utc).total_seconds() == 23 * 3600

    def test_utc_window_touches_one_date(self):
        window = local_day_window("2025-01-15", "UTC")
        assert window.utc_dates() == [date(2025, 1, 15)]

    def test_half_open(self):
        window = local_day_window("2025-01-15", "UTC")
        assert window.contains(window.start_utc)
        assert not window.contains(window.end_utc)
        assert not window.contains(datetime(2025, 1, 15, 12))

    @pytest.mark.parametrize("value", ["2025-13-01", "tomorrow", ""])
    def test_invalid_date(self, value):
        with pytest.raises(ValueError):
            parse_iso_date(value)

    def test_invalid_zone(self):
        with pytest.raises(ValueError):
            resolve_zone("Mars/Olympus_Mons")

    def test_window_validation(self):
        start = datetime(2025, 1, 15, tzinfo=timezone.utc)
        with pytest.raises(ValueError):
            DateWindow(start, start)
        with pytest.raises(ValueError):
            DateWindow(datetime(2025, 1, 15), datetime(2025, 1, 16))


class TestDistributions:
    def test_z_for_five_percent(self):
        assert z_for_quantile(0.05) == pytest.approx(1.6449, abs=1e-4)
        assert z_for_quantile(0.03) == pytest.approx(1.8808, abs=1e-4)

    @pytest.mark.parametrize("q", [0.0, 0.5, 0.9, -0.1])
    def test_z_rejects_non_tail_quantiles(self, q):
        with pytest.raises(ValueError):
            z_for_quantile(q)

    def test_population_std(self):
        assert population_std([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(2.0)
        assert population_std([3.0]) is None


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("mto.test", logging.INFO, __file__, 10, "fused %d games", (3,), None)
    record.extra_fields = {"sport": "NBA"}
    data = json.loads(JSONFormatter().format(record))
    assert data["message"] == "fused 3 games"
    assert data["level"] == "INFO"
    assert data["sport"] == "NBA"
    assert data["logger"] == "mto.test"
    assert data["line"] == 10


def test_module_loggers_share_package_handler():
    log = get_logger("mto.pipeline.fusion")
    assert log.handlers == []
    assert log.propagate
    assert len(logging.getLogger(PACKAGE_LOGGER).handlers) == 1

"""
Per-(source, sport) circuit breaker for upstream feeds.

A feed that keeps failing is short-circuited for a cool-down period instead
of being hit on every request; the adapter reports `circuit_open` and the
slate is built from whatever the other feed returned. After the cool-down a
single probe call is let through: success closes the breaker, failure opens
it again for another cool-down.

Only exceptions of `BreakerConfig.counted` trip the breaker, so cancellation
and programming errors pass through without touching its state.
"""
from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from enum import Enum
from threading import Lock
from typing import Any, Awaitable, Callable, Optional

from mto.utils.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]


class BreakerState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"  # cool-down elapsed, next call is a probe


@dataclass(frozen=True)
class BreakerConfig:
    failure_threshold: int = 3  # consecutive counted failures before opening
    recovery_successes: int = 1  # probe successes needed to close again
    cooldown_seconds: float = 60.0
    counted: type[BaseException] = Exception

    def __post_init__(self) -> None:
        if self.failure_threshold < 1 or self.recovery_successes < 1:
            raise ValueError("Breaker thresholds must be at least 1")
        if self.cooldown_seconds < 0:
            raise ValueError("cooldown_seconds must not be negative")


@dataclass
class BreakerCounters:
    consecutive_failures: int = 0
    probe_successes: int = 0
    opened_at: Optional[float] = None
    calls: int = 0
    failures: int = 0
    successes: int = 0
    rejected: int = 0
    probe_in_flight: bool = False


class CircuitOpenError(Exception):
    """The breaker rejected a call without contacting the upstream."""

    def __init__(self, name: str, retry_in: float):
        super().__init__(f"Circuit '{name}' is open - retry in {retry_in:.0f}s")
        self.name = name
        self.retry_in = retry_in


class CircuitBreaker:
    """State machine guarding one upstream (source, sport) pair."""

    def __init__(
        self,
        name: str,
        config: Optional[BreakerConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.name = name
        self.config = config or BreakerConfig()
        self._clock: Clock = clock or time.monotonic
        self._state = BreakerState.CLOSED
        self._counters = BreakerCounters()
        self._lock = Lock()

    @property
    def state(self) -> BreakerState:
        return self._state

    def _admit(self) -> bool:
        """
        Raise CircuitOpenError unless a call may go through now.

        Returns:
            True when the admitted call is the half-open probe
        """
        with self._lock:
            self._counters.calls += 1
            if self._state is BreakerState.CLOSED:
                return False
            if self._state is BreakerState.OPEN:
                waited = self._clock() - (self._counters.opened_at or 0.0)
                if waited < self.config.cooldown_seconds:
                    self._counters.rejected += 1
                    retry_in = self.config.cooldown_seconds - waited
                    raise CircuitOpenError(self.name, retry_in)
                logger.info(f"Breaker {self.name}: cool-down over, probing upstream")
                self._state = BreakerState.HALF_OPEN
                self._counters.probe_successes = 0
            # HALF_OPEN: one probe at a time, everyone else waits for its verdict
            if self._counters.probe_in_flight:
                self._counters.rejected += 1
                raise CircuitOpenError(self.name, 0.0)
            self._counters.probe_in_flight = True
            return True

    def _release_probe(self) -> None:
        with self._lock:
            self._counters.probe_in_flight = False

    def _on_success(self) -> None:
        with self._lock:
            self._counters.successes += 1
            self._counters.consecutive_failures = 0
            if self._state is BreakerState.HALF_OPEN:
                self._counters.probe_successes += 1
                if self._counters.probe_successes >= self.config.recovery_successes:
                    logger.info(f"Breaker {self.name}: upstream recovered, closing")
                    self._state = BreakerState.CLOSED

    def _on_failure(self) -> None:
        with self._lock:
            self._counters.failures += 1
            self._counters.consecutive_failures += 1
            tripped = (
                self._state is BreakerState.HALF_OPEN
                or self._counters.consecutive_failures >= self.config.failure_threshold
            )
            if not tripped:
                return
            if self._state is not BreakerState.OPEN:
                logger.warning(
                    f"Breaker {self.name}: opening after "
                    f"{self._counters.consecutive_failures} consecutive failure(s)"
                )
            self._state = BreakerState.OPEN
            self._counters.opened_at = self._clock()

    async def call_async(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """
        Await func(*args, **kwargs) through the breaker.

        Raises:
            CircuitOpenError: the breaker is open and the cool-down has not
                passed, or a half-open probe is still in flight
        """
        probe = self._admit()
        try:
            result = await func(*args, **kwargs)
        except self.config.counted:
            self._on_failure()
            raise
        else:
            self._on_success()
            return result
        finally:
            if probe:
                self._release_probe()

    def reset(self) -> None:
        with self._lock:
            self._state = BreakerState.CLOSED
            self._counters = BreakerCounters()

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            return {"name": self.name, "state": self._state.value, **asdict(self._counters)}


class BreakerRegistry:
    """Lazily created breakers, one per (source, sport), sharing one config."""

    def __init__(self, config: Optional[BreakerConfig] = None, clock: Optional[Clock] = None):
        self.config = config or BreakerConfig()
        self._clock = clock
        self._breakers: dict[tuple[str, str], CircuitBreaker] = {}
        self._lock = Lock()

    def get(self, source: str, sport: str) -> CircuitBreaker:
        with self._lock:
            breaker = self._breakers.get((source, sport))
            if breaker is None:
                breaker = CircuitBreaker(f"{source}:{sport}", self.config, clock=self._clock)
                self._breakers[(source, sport)] = breaker
            return breaker

    def get_stats(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            breakers = sorted(self._breakers.values(), key=lambda b: b.name)
        return {b.name: b.get_stats() for b in breakers}

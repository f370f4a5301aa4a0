"""
Retry policy shared by the feed adapters.

Thin wrapper over tenacity: a fixed number of attempts, a linear backoff
(`backoff_seconds * attempt`) and a predicate that decides which errors are
worth another attempt. Anything the predicate rejects (HTML bodies, 4xx,
cancellation) is re-raised immediately.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from mto.utils.logging import get_logger

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 2
    backoff_seconds: float = 0.4
    retry_on: tuple[type[BaseException], ...] = ()
    sleep: Sleep = field(default=asyncio.sleep, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("attempts must be at least 1")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds must not be negative")

    def backoff(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        return self.backoff_seconds * attempt

    def is_retryable(self, error: BaseException) -> bool:
        return bool(self.retry_on) and isinstance(error, self.retry_on)

    def _wait(self, retry_state: RetryCallState) -> float:
        return self.backoff(retry_state.attempt_number)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        error: Optional[BaseException] = outcome.exception() if outcome else None
        logger.info(
            f"Retrying {getattr(retry_state.fn, '__qualname__', 'call')} "
            f"after attempt {retry_state.attempt_number}: {error}"
        )

    async def run(self, fn: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Await fn(*args, **kwargs), retrying retryable errors."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=self._wait,
            retry=retry_if_exception(self.is_retryable),
            sleep=self.sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
        return await retrying(fn, *args, **kwargs)

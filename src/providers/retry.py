"""Retry-with-backoff helpers used by the LLM client and the generation agent.

The delay schedule is a pure function of the attempt number,
``base_delay_ms * 2 ** (attempt - 1)``, with optional proportional jitter.
``retry_async`` drives a tenacity ``AsyncRetrying`` loop: attempts run
strictly one after another and it never sleeps past an optional :class:`Deadline`.
"""
from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, Dict, Optional, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt
from tenacity.stop import stop_base
from tenacity.wait import wait_base

from .errors import DeadlineExceeded, ProviderError

T = TypeVar("T")

LOGGER = logging.getLogger("providers.retry")


def backoff_delay(
    attempt: int,
    base_delay_ms: float = 1000.0,
    jitter: float = 0.0,
    rng: Callable[[], float] = random.random,
) -> float:
    """Return the delay in milliseconds before retry ``attempt`` (1-based)."""

    if attempt < 1:
        raise ValueError("attempt must be >= 1")
    delay = base_delay_ms * (2 ** (attempt - 1))
    if jitter > 0:
        delay += delay * min(jitter, 1.0) * rng()
    return delay


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, DeadlineExceeded):
        return False
    if isinstance(exc, ProviderError):
        return exc.retryable
    return isinstance(exc, (asyncio.TimeoutError, ConnectionError))


class Deadline:
    """Absolute time budget for one request, measured on a monotonic clock."""

    def __init__(
        self,
        budget_ms: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self.expires_at = None if budget_ms is None else clock() + budget_ms / 1000.0

    def remaining(self) -> Optional[float]:
        """Seconds left, or ``None`` when the request is unbounded."""

        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - self._clock())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self, stage: str) -> None:
        if self.expired():
            raise DeadlineExceeded(stage)

    def cap(self, timeout_s: Optional[float]) -> Optional[float]:
        remaining = self.remaining()
        if remaining is None:
            return timeout_s
        if timeout_s is None:
            return remaining
        return min(timeout_s, remaining)


class _BackoffWait(wait_base):
    """Exponential schedule keyed on the number of the attempt that just failed."""

    def __init__(self, base_delay_ms: float, jitter: float) -> None:
        self.base_delay_ms = base_delay_ms
        self.jitter = jitter
        self._delays: Dict[int, float] = {}

    def delay_ms(self, retry_state: RetryCallState) -> float:
        attempt = retry_state.attempt_number
        if attempt not in self._delays:
            self._delays[attempt] = backoff_delay(attempt, self.base_delay_ms, self.jitter)
        return self._delays[attempt]

    def __call__(self, retry_state: RetryCallState) -> float:
        return self.delay_ms(retry_state) / 1000.0


class _StopAtDeadline(stop_base):
    """Stop once the next backoff would not fit in the remaining budget."""

    def __init__(self, deadline: Optional[Deadline], wait: _BackoffWait) -> None:
        self.deadline = deadline
        self.wait = wait

    def __call__(self, retry_state: RetryCallState) -> bool:
        if self.deadline is None:
            return False
        remaining = self.deadline.remaining()
        if remaining is None:
            return False
        delay_ms = self.wait.delay_ms(retry_state)
        if delay_ms / 1000.0 < remaining:
            return False
        LOGGER.warning(
            "Not retrying after attempt %s: backoff %.0fms exceeds remaining budget",
            retry_state.attempt_number,
            delay_ms,
        )
        return True


async def retry_async(
    operation: Callable[[int], Awaitable[T]],
    *,
    max_retries: int,
    base_delay_ms: float = 1000.0,
    jitter: float = 0.0,
    should_retry: Callable[[BaseException], bool] = is_retryable,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    deadline: Optional[Deadline] = None,
    on_retry: Optional[Callable[[int, float, BaseException], None]] = None,
) -> T:
    """Run ``operation`` and retry it up to ``max_retries`` times.

    ``operation`` receives the 1-based attempt number. At most
    ``max_retries + 1`` calls are made; the last exception is re-raised when
    the budget runs out or the error is not retryable.
    """

    wait = _BackoffWait(base_delay_ms, jitter)

    def retry_on(exc: BaseException) -> bool:
        if not isinstance(exc, Exception) or isinstance(exc, DeadlineExceeded):
            return False
        return should_retry(exc)

    def before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception()
        delay_ms = wait.delay_ms(retry_state)
        if on_retry is not None:
            on_retry(retry_state.attempt_number, delay_ms, exc)
        LOGGER.debug(
            "Attempt %s failed (%s); retry %s/%s in %.0fms",
            retry_state.attempt_number,
            exc,
            retry_state.attempt_number,
            max_retries,
            delay_ms,
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_retries + 1) | _StopAtDeadline(deadline, wait),
        wait=wait,
        retry=retry_if_exception(retry_on),
        sleep=sleep,
        before_sleep=before_sleep,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            number = attempt.retry_state.attempt_number
            if deadline is not None:
                deadline.check(f"attempt {number}")
            result = await operation(number)
    return result


__all__ = ["Deadline", "backoff_delay", "is_retryable", "retry_async"]

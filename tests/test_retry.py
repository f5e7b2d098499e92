import asyncio

import pytest

from conftest import RecordingSleep
from providers.errors import DeadlineExceeded, ProviderRequestError, ProviderTransientError
from providers.retry import Deadline, backoff_delay, is_retryable, retry_async


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_backoff_doubles_from_base():
    assert [backoff_delay(n) for n in (1, 2, 3)] == [1000, 2000, 4000]
    assert backoff_delay(2, base_delay_ms=250) == 500


def test_backoff_jitter_is_proportional():
    assert backoff_delay(1, 1000, jitter=0.5, rng=lambda: 1.0) == 1500
    with pytest.raises(ValueError):
        backoff_delay(0)


def test_retryable_classification():
    assert is_retryable(ProviderTransientError("503"))
    assert not is_retryable(ProviderRequestError("400"))
    assert not is_retryable(DeadlineExceeded("synthesis"))


def test_deadline_caps_timeouts():
    clock = FakeClock()
    deadline = Deadline(5000, clock=clock)
    assert deadline.cap(60.0) == 5.0
    clock.now = 6.0
    assert deadline.expired()
    with pytest.raises(DeadlineExceeded):
        deadline.check("image generation")
    assert Deadline(None).cap(60.0) == 60.0


async def test_retry_until_success():
    sleep = RecordingSleep()
    calls = []

    async def operation(attempt):
        calls.append(attempt)
        if attempt < 4:
            raise ProviderTransientError("flaky")
        return "ok"

    result = await retry_async(operation, max_retries=3, sleep=sleep)
    assert result == "ok"
    assert calls == [1, 2, 3, 4]
    assert sleep.delays == [1.0, 2.0, 4.0]


async def test_retry_budget_exhausted_reraises_last_error():
    sleep = RecordingSleep()

    async def operation(attempt):
        raise ProviderTransientError(f"attempt {attempt}")

    with pytest.raises(ProviderTransientError, match="attempt 3"):
        await retry_async(operation, max_retries=2, sleep=sleep)
    assert len(sleep.delays) == 2


async def test_non_retryable_error_stops_immediately():
    sleep = RecordingSleep()

    async def operation(attempt):
        raise ProviderRequestError("bad request")

    with pytest.raises(ProviderRequestError):
        await retry_async(operation, max_retries=5, sleep=sleep)
    assert sleep.delays == []


async def test_backoff_never_sleeps_past_deadline():
    clock = FakeClock()
    sleep = RecordingSleep()
    deadline = Deadline(1500, clock=clock)

    async def operation(attempt):
        raise ProviderTransientError("flaky")

    with pytest.raises(ProviderTransientError):
        await retry_async(operation, max_retries=3, sleep=sleep, deadline=deadline)
    assert sleep.delays == [1.0]


async def test_on_retry_sees_the_same_jittered_delay_that_is_slept():
    sleep = RecordingSleep()
    seen = []

    async def operation(attempt):
        if attempt < 3:
            raise ProviderTransientError("flaky")
        return attempt

    result = await retry_async(
        operation,
        max_retries=3,
        jitter=0.5,
        sleep=sleep,
        on_retry=lambda retry, delay_ms, exc: seen.append((retry, delay_ms)),
    )
    assert result == 3
    assert [retry for retry, _ in seen] == [1, 2]
    assert sleep.delays == [delay_ms / 1000.0 for _, delay_ms in seen]
    assert 1000 <= seen[0][1] <= 1500
    assert 2000 <= seen[1][1] <= 3000


async def test_expired_deadline_is_never_retried():
    clock = FakeClock()
    sleep = RecordingSleep()
    deadline = Deadline(1000, clock=clock)
    calls = []

    async def operation(attempt):
        calls.append(attempt)
        clock.now = 5.0
        raise ProviderTransientError("flaky")

    with pytest.raises(ProviderTransientError):
        await retry_async(
            operation,
            max_retries=3,
            sleep=sleep,
            deadline=deadline,
            should_retry=lambda exc: True,
        )
    assert calls == [1]
    assert sleep.delays == []


async def test_deadline_checked_before_each_attempt():
    clock = FakeClock()
    deadline = Deadline(10_000, clock=clock)

    async def advancing_sleep(seconds):
        clock.now += 20.0

    async def operation(attempt):
        raise ProviderTransientError("flaky")

    with pytest.raises(DeadlineExceeded, match="attempt 2"):
        await retry_async(
            operation,
            max_retries=3,
            sleep=advancing_sleep,
            deadline=deadline,
            should_retry=lambda exc: True,
        )


async def test_cancellation_is_not_retried():
    sleep = RecordingSleep()

    async def operation(attempt):
        raise asyncio.CancelledError()

    with pytest.raises(asyncio.CancelledError):
        await retry_async(operation, max_retries=3, sleep=sleep, should_retry=lambda exc: True)
    assert sleep.delays == []

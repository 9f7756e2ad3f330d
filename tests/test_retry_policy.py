import pytest

from thumbcraft.services.retry_policy import ExponentialBackoff, RetryPolicy, run_with_retry


class Flaky:
    def __init__(self, failures, error_factory=lambda: RuntimeError("boom"), value="ok"):
        self.failures = failures
        self.error_factory = error_factory
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error_factory()
        return self.value


def recording_sleep():
    delays = []

    async def sleep(d):
        delays.append(d)

    return delays, sleep


def test_backoff_grows_and_caps():
    b = ExponentialBackoff(base=0.5, factor=2.0, max_delay=3.0)
    assert b.delay(0) == 0.0
    assert b.delay(1) == 0.5
    assert b.delay(2) == 1.0
    assert b.delay(3) == 2.0
    assert b.delay(4) == 3.0


@pytest.mark.asyncio
async def test_first_attempt_success_does_not_sleep():
    delays, sleep = recording_sleep()
    op = Flaky(0)
    outcome = await run_with_retry(op, RetryPolicy(max_attempts=2), sleep=sleep)
    assert outcome.ok and outcome.value == "ok"
    assert outcome.attempts == 1
    assert delays == []


@pytest.mark.asyncio
async def test_retryable_error_is_retried_with_backoff():
    delays, sleep = recording_sleep()
    op = Flaky(1)
    outcome = await run_with_retry(op, RetryPolicy(max_attempts=2), sleep=sleep)
    assert outcome.ok
    assert outcome.attempts == 2
    assert len(outcome.errors) == 1
    assert delays == [0.5]


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts():
    delays, sleep = recording_sleep()
    op = Flaky(5)
    outcome = await run_with_retry(op, RetryPolicy(max_attempts=2), sleep=sleep)
    assert not outcome.ok
    assert op.calls == 2
    assert outcome.attempts == 2
    assert isinstance(outcome.error, RuntimeError)
    assert delays == [0.5]
    with pytest.raises(RuntimeError):
        outcome.unwrap()


@pytest.mark.asyncio
async def test_non_retryable_error_stops_immediately():
    delays, sleep = recording_sleep()
    op = Flaky(5, error_factory=lambda: ValueError("fatal"))
    outcome = await run_with_retry(
        op,
        RetryPolicy(max_attempts=3),
        is_retryable=lambda e: not isinstance(e, ValueError),
        sleep=sleep,
    )
    assert op.calls == 1
    assert isinstance(outcome.error, ValueError)
    assert delays == []

# FILE: thumbcraft/services/retry_policy.py
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, List, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class ExponentialBackoff:
    base: float = 0.5
    factor: float = 2.0
    max_delay: float = 8.0

    def delay(self, failed_attempts: int) -> float:
        if failed_attempts <= 0 or self.base <= 0:
            return 0.0
        return min(self.max_delay, self.base * (self.factor ** (failed_attempts - 1)))


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 2
    backoff: ExponentialBackoff = field(default_factory=ExponentialBackoff)


@dataclass
class RetryOutcome(Generic[T]):
    value: Optional[T] = None
    error: Optional[Exception] = None
    attempts: int = 0
    errors: List[Exception] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value


async def run_with_retry(
        operation: Callable[[], Awaitable[T]],
        policy: RetryPolicy,
        *,
        is_retryable: Callable[[Exception], bool] = lambda e: True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> RetryOutcome[T]:
    """
    Run ``operation`` up to ``policy.max_attempts`` times.

    Never raises operation errors: they are returned on the outcome so the
    caller decides how to log and surface them. Cancellation is not caught.
    """
    outcome: RetryOutcome[T] = RetryOutcome()
    attempts = max(1, policy.max_attempts)

    for attempt in range(1, attempts + 1):
        outcome.attempts = attempt
        try:
            outcome.value = await operation()
            outcome.error = None
            return outcome
        except Exception as exc:
            outcome.error = exc
            outcome.errors.append(exc)
            if attempt >= attempts or not is_retryable(exc):
                return outcome
        await sleep(policy.backoff.delay(attempt))

    return outcome

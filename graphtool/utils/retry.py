"""
Retry orchestration with exponential backoff for transient failures.

Usage:
    from graphtool.utils.retry import RetryPolicy, execute

    policy = RetryPolicy(max_retries=3, base_delay=2.0)
    events = await execute(policy, lambda: client.get(url), cancellation=signal)

The operation is a zero-argument callable returning a fresh awaitable on every
call, since a coroutine can only be awaited once.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from ..constants import MAX_BACKOFF_SECONDS
from ..exceptions import (
    DeadlineExceededError,
    OperationCancelledError,
    RetryExhaustedError,
)
from .classifier import classify

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleeper = Callable[[float, "CancellationSignal | None"], Awaitable[None]]
RetryObserver = Callable[[int, float, BaseException], None]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Immutable retry configuration.

    max_retries: retries after the first attempt (0 means a single call).
    base_delay:  seconds before the first retry; doubles on every retry.
    max_delay:   ceiling for a single backoff wait.
    """

    max_retries: int = 3
    base_delay: float = 2.0
    max_delay: float = MAX_BACKOFF_SECONDS

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")
        if self.max_delay < 0:
            raise ValueError(f"max_delay must be >= 0, got {self.max_delay}")


class CancellationSignal:
    """
    Cancellation handle threaded from the top-level invocation down to the
    backoff wait. Fires on an explicit cancel() or when the optional deadline
    (time.monotonic() seconds) passes.
    """

    def __init__(self, deadline: float | None = None) -> None:
        self._event = asyncio.Event()
        self.deadline = deadline

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancellationSignal":
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self._deadline_passed()

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None when there is no deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def _deadline_passed(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError("operation cancelled")
        if self._deadline_passed():
            raise DeadlineExceededError("deadline exceeded")

    async def wait(self, delay: float) -> None:
        """Sleep for ``delay`` seconds unless cancellation fires first."""
        self.raise_if_cancelled()

        timeout = delay
        deadline_first = False
        remaining = self.remaining()
        if remaining is not None and remaining < delay:
            timeout = remaining
            deadline_first = True

        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            if deadline_first:
                raise DeadlineExceededError("retry cancelled: deadline exceeded") from None
            return
        raise OperationCancelledError("retry cancelled")


def backoff_delay(policy: RetryPolicy, attempt: int) -> float:
    """Delay before retry number ``attempt + 1``: base * 2^attempt, capped."""
    # bounded exponent keeps the product finite
    exponent = min(attempt, 62)
    return min(policy.base_delay * (2 ** exponent), policy.max_delay)


async def _default_sleep(delay: float, cancellation: CancellationSignal | None) -> None:
    if cancellation is None:
        await asyncio.sleep(delay)
    else:
        await cancellation.wait(delay)


def _log_retry(attempt: int, delay: float, error: BaseException) -> None:
    logger.warning(
        "Retryable error encountered (attempt %d): %s. Retrying in %.1fs...",
        attempt + 1, error, delay,
    )


async def execute(
    policy: RetryPolicy,
    operation: Callable[[], Awaitable[T]],
    *,
    cancellation: CancellationSignal | None = None,
    sleep: Sleeper | None = None,
    observer: RetryObserver | None = None,
) -> T:
    """
    Run ``operation`` and retry transient failures with exponential backoff.

    Permanent failures are re-raised unchanged after a single call. A transient
    failure on the last allowed attempt raises RetryExhaustedError with the
    last error as its cause. Cancellation during a backoff wait raises
    OperationCancelledError (or DeadlineExceededError) and stops retrying.

    Args:
        policy: Retry bound and delays.
        operation: Callable returning a new awaitable for each attempt.
        cancellation: Signal raced against every backoff wait.
        sleep: Replacement for the backoff wait, called as sleep(delay, cancellation).
        observer: Called as observer(attempt, delay, error) before each wait.
    """
    wait = sleep or _default_sleep
    notify = observer or _log_retry

    attempt = 0
    while True:
        try:
            result = await operation()
        except Exception as exc:
            classification = classify(exc)
            if not classification.is_transient:
                logger.debug("Non-transient error (not retrying): %s", exc)
                raise
            if attempt >= policy.max_retries:
                logger.error(
                    "All %d retries exhausted (%s): %s",
                    policy.max_retries, classification.reason, exc,
                )
                raise RetryExhaustedError(policy.max_retries, exc) from exc
            last_error = exc
        else:
            if attempt > 0:
                logger.info("Operation succeeded after %d retries", attempt)
            return result

        delay = backoff_delay(policy, attempt)
        notify(attempt, delay, last_error)
        await wait(delay, cancellation)
        attempt += 1

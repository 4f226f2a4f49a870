"""
Tests for the retry orchestrator and CancellationSignal.
Backoff waits are replaced with a recording sleeper; no real time passes
except in the CancellationSignal tests, which use sub-second delays.
"""

import asyncio
import time
from unittest.mock import AsyncMock

import pytest

from graphtool.exceptions import (
    DeadlineExceededError,
    GraphAPIError,
    OperationCancelledError,
    RetryExhaustedError,
)
from graphtool.utils.retry import (
    CancellationSignal,
    RetryPolicy,
    backoff_delay,
    execute,
)


def throttled() -> GraphAPIError:
    return GraphAPIError("Too many requests", 429, code="TooManyRequests")


class RecordingSleep:
    """Sleeper that records requested delays and returns immediately."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay, cancellation):
        self.delays.append(delay)


class TestRetryPolicy:
    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.max_retries == 3
        assert policy.base_delay == 2.0
        assert policy.max_delay == 30.0

    @pytest.mark.parametrize("kwargs", [
        {"max_retries": -1},
        {"base_delay": -0.5},
        {"max_delay": -1},
    ])
    def test_negative_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)

    def test_backoff_doubles_then_caps(self):
        policy = RetryPolicy(max_retries=6, base_delay=2.0)
        assert [backoff_delay(policy, n) for n in range(6)] == [2, 4, 8, 16, 30, 30]

    def test_backoff_huge_attempt_stays_capped(self):
        assert backoff_delay(RetryPolicy(base_delay=2.0), 10_000) == 30.0


class TestExecute:
    @pytest.mark.asyncio
    async def test_success_first_try(self):
        op = AsyncMock(return_value="ok")
        sleep = RecordingSleep()
        result = await execute(RetryPolicy(), op, sleep=sleep)
        assert result == "ok"
        assert op.await_count == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_transient_then_success(self):
        op = AsyncMock(side_effect=[throttled(), throttled(), {"value": []}])
        sleep = RecordingSleep()
        result = await execute(RetryPolicy(max_retries=3, base_delay=2.0), op, sleep=sleep)
        assert result == {"value": []}
        assert op.await_count == 3
        assert sleep.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self):
        err = GraphAPIError("Forbidden", 403, code="ErrorAccessDenied")
        op = AsyncMock(side_effect=err)
        sleep = RecordingSleep()
        with pytest.raises(GraphAPIError) as exc_info:
            await execute(RetryPolicy(max_retries=5), op, sleep=sleep)
        assert exc_info.value is err
        assert op.await_count == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_retries", [0, 1, 3, 5])
    async def test_persistent_transient_runs_n_plus_one_times(self, max_retries):
        def always_throttled():
            raise throttled()

        op = AsyncMock(side_effect=always_throttled)
        sleep = RecordingSleep()
        with pytest.raises(RetryExhaustedError) as exc_info:
            await execute(RetryPolicy(max_retries=max_retries, base_delay=0.1), op, sleep=sleep)
        assert op.await_count == max_retries + 1
        assert len(sleep.delays) == max_retries
        assert exc_info.value.retries == max_retries
        assert isinstance(exc_info.value.__cause__, GraphAPIError)

    @pytest.mark.asyncio
    async def test_throttled_three_retries_waits_seven_seconds(self):
        op = AsyncMock(side_effect=[throttled() for _ in range(4)])
        sleep = RecordingSleep()
        with pytest.raises(RetryExhaustedError) as exc_info:
            await execute(RetryPolicy(max_retries=3, base_delay=1.0), op, sleep=sleep)
        assert op.await_count == 4
        assert sleep.delays == [1.0, 2.0, 4.0]
        assert sum(sleep.delays) == 7.0
        assert "operation failed after 3 retries" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_delay_sequence_capped_at_thirty_seconds(self):
        op = AsyncMock(side_effect=[throttled() for _ in range(7)])
        sleep = RecordingSleep()
        with pytest.raises(RetryExhaustedError):
            await execute(RetryPolicy(max_retries=6, base_delay=2.0), op, sleep=sleep)
        assert sleep.delays == [2, 4, 8, 16, 30, 30]

    @pytest.mark.asyncio
    async def test_observer_called_before_each_wait(self):
        op = AsyncMock(side_effect=[throttled(), "done"])
        calls = []
        await execute(
            RetryPolicy(max_retries=2, base_delay=0.5),
            op,
            sleep=RecordingSleep(),
            observer=lambda attempt, delay, err: calls.append((attempt, delay, type(err))),
        )
        assert calls == [(0, 0.5, GraphAPIError)]

    @pytest.mark.asyncio
    async def test_cancel_during_backoff_stops_retrying(self):
        signal = CancellationSignal()
        op = AsyncMock(side_effect=[throttled() for _ in range(4)])

        async def cancelling_sleep(delay, cancellation):
            cancellation.cancel()
            await cancellation.wait(delay)

        with pytest.raises(OperationCancelledError):
            await execute(
                RetryPolicy(max_retries=3, base_delay=1.0),
                op,
                cancellation=signal,
                sleep=cancelling_sleep,
            )
        assert op.await_count == 1

    @pytest.mark.asyncio
    async def test_cancellation_error_from_operation_is_permanent(self):
        op = AsyncMock(side_effect=OperationCancelledError("cancelled: timeout"))
        sleep = RecordingSleep()
        with pytest.raises(OperationCancelledError):
            await execute(RetryPolicy(max_retries=3), op, sleep=sleep)
        assert op.await_count == 1


class TestCancellationSignal:
    @pytest.mark.asyncio
    async def test_wait_returns_after_delay(self):
        signal = CancellationSignal()
        start = time.monotonic()
        await signal.wait(0.05)
        assert time.monotonic() - start >= 0.04
        assert not signal.cancelled

    @pytest.mark.asyncio
    async def test_cancel_interrupts_wait(self):
        signal = CancellationSignal()
        asyncio.get_running_loop().call_later(0.05, signal.cancel)
        start = time.monotonic()
        with pytest.raises(OperationCancelledError):
            await signal.wait(10)
        assert time.monotonic() - start < 5

    @pytest.mark.asyncio
    async def test_deadline_shorter_than_delay(self):
        signal = CancellationSignal.with_timeout(0.05)
        with pytest.raises(DeadlineExceededError):
            await signal.wait(10)

    def test_raise_if_cancelled(self):
        signal = CancellationSignal()
        signal.raise_if_cancelled()
        signal.cancel()
        assert signal.cancelled
        with pytest.raises(OperationCancelledError):
            signal.raise_if_cancelled()

    def test_expired_deadline(self):
        signal = CancellationSignal(deadline=time.monotonic() - 1)
        assert signal.cancelled
        assert signal.remaining() == 0.0
        with pytest.raises(DeadlineExceededError):
            signal.raise_if_cancelled()

    def test_no_deadline_has_no_remaining(self):
        assert CancellationSignal().remaining() is None

    @pytest.mark.asyncio
    async def test_default_sleep_uses_signal(self):
        signal = CancellationSignal()
        signal.cancel()
        op = AsyncMock(side_effect=[throttled(), "ok"])
        with pytest.raises(OperationCancelledError):
            await execute(RetryPolicy(max_retries=1, base_delay=5.0), op, cancellation=signal)
        assert op.await_count == 1

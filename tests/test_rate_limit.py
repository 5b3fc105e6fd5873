"""Tests for the debrid RateLimiter and CircuitBreaker."""

from __future__ import annotations

import asyncio
import time
from unittest.mock import patch

import pytest

from bluecat.core.errors import CapacityExceededError, CircuitOpenError, ErrorKind, TransportError
from bluecat.utils.rate_limit import CircuitBreaker, CircuitState, RateLimiter


async def _noop() -> str:
    return "ok"


class TestRateLimiter:
    @pytest.mark.asyncio()
    async def test_returns_function_result(self) -> None:
        limiter = RateLimiter(max_requests=5, window=1.0, max_queue_size=10)
        assert await limiter.execute(_noop) == "ok"

    @pytest.mark.asyncio()
    async def test_propagates_function_exception(self) -> None:
        limiter = RateLimiter(max_requests=5, window=1.0, max_queue_size=10)

        async def boom() -> None:
            raise TransportError(ErrorKind.SERVER, "boom")

        with pytest.raises(TransportError):
            await limiter.execute(boom)

    @pytest.mark.asyncio()
    async def test_never_exceeds_window_limit(self) -> None:
        limiter = RateLimiter(max_requests=2, window=0.2, max_queue_size=20)
        started: list[float] = []

        async def record() -> None:
            started.append(time.monotonic())

        await asyncio.gather(*(limiter.execute(record) for _ in range(6)))

        assert len(started) == 6
        for i in range(len(started) - 2):
            assert started[i + 2] - started[i] >= 0.19

    @pytest.mark.asyncio()
    async def test_requests_start_in_fifo_order(self) -> None:
        limiter = RateLimiter(max_requests=1, window=0.05, max_queue_size=20)
        order: list[int] = []

        def make(i: int):
            async def run() -> None:
                order.append(i)
            return run

        await asyncio.gather(*(limiter.execute(make(i)) for i in range(4)))
        assert order == [0, 1, 2, 3]

    @pytest.mark.asyncio()
    async def test_full_queue_rejects_immediately(self) -> None:
        limiter = RateLimiter(max_requests=1, window=10.0, max_queue_size=1)
        await limiter.execute(_noop)

        waiting = asyncio.create_task(limiter.execute(_noop))
        await asyncio.sleep(0.05)

        try:
            with pytest.raises(CapacityExceededError) as exc_info:
                await limiter.execute(_noop)
            assert exc_info.value.kind == ErrorKind.CAPACITY
        finally:
            waiting.cancel()
            limiter._worker.cancel()

    @pytest.mark.asyncio()
    async def test_status_reports_window_usage(self) -> None:
        limiter = RateLimiter(max_requests=3, window=10.0, max_queue_size=5)
        await limiter.execute(_noop)
        status = limiter.status()
        assert status["in_window"] == 1
        assert status["queued"] == 0
        assert status["max_requests"] == 3


class TestCircuitBreakerStates:
    def test_starts_closed(self) -> None:
        breaker = CircuitBreaker(threshold=3, timeout=30.0)
        assert breaker.state == CircuitState.CLOSED

    def test_failures_below_threshold_stay_closed(self) -> None:
        breaker = CircuitBreaker(threshold=3, timeout=30.0)
        breaker.record_failure()
        breaker.record_failure()
        assert breaker.state == CircuitState.CLOSED

    def test_success_resets_failure_count(self) -> None:
        breaker = CircuitBreaker(threshold=3, timeout=30.0)
        breaker.record_failure()
        breaker.record_failure()
        breaker.record_success()
        breaker.record_failure()
        assert breaker.failures == 1
        assert breaker.state == CircuitState.CLOSED

    def test_opens_at_threshold(self) -> None:
        breaker = CircuitBreaker(threshold=2, timeout=30.0)
        breaker.record_failure()
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN

    def test_open_rejects_with_remaining_time(self) -> None:
        breaker = CircuitBreaker(threshold=1, timeout=30.0)
        breaker.record_failure()
        with pytest.raises(CircuitOpenError) as exc_info:
            breaker._before_call()
        assert 0 < exc_info.value.retry_in <= 30.0

    def test_half_open_after_timeout(self) -> None:
        breaker = CircuitBreaker(threshold=1, timeout=10.0)
        breaker.record_failure()

        with patch.object(time, "monotonic", return_value=time.monotonic() + 11):
            breaker._before_call()
        assert breaker.state == CircuitState.HALF_OPEN

    def test_half_open_admits_single_trial(self) -> None:
        breaker = CircuitBreaker(threshold=1, timeout=10.0)
        breaker.record_failure()

        with patch.object(time, "monotonic", return_value=time.monotonic() + 11):
            breaker._before_call()
            with pytest.raises(CircuitOpenError):
                breaker._before_call()

    def test_half_open_success_closes(self) -> None:
        breaker = CircuitBreaker(threshold=1, timeout=10.0)
        breaker.record_failure()
        with patch.object(time, "monotonic", return_value=time.monotonic() + 11):
            breaker._before_call()
        breaker.record_success()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failures == 0

    def test_half_open_failure_reopens(self) -> None:
        breaker = CircuitBreaker(threshold=3, timeout=10.0)
        for _ in range(3):
            breaker.record_failure()
        with patch.object(time, "monotonic", return_value=time.monotonic() + 11):
            breaker._before_call()
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN


class TestCircuitBreakerCall:
    @pytest.mark.asyncio()
    async def test_counts_failures_and_opens(self) -> None:
        breaker = CircuitBreaker(threshold=2, timeout=30.0)

        async def fail() -> None:
            raise TransportError(ErrorKind.SERVER, "down")

        for _ in range(2):
            with pytest.raises(TransportError):
                await breaker.call(fail)

        called = False

        async def guarded() -> None:
            nonlocal called
            called = True

        with pytest.raises(CircuitOpenError):
            await breaker.call(guarded)
        assert called is False

    @pytest.mark.asyncio()
    async def test_recovers_after_timeout(self) -> None:
        breaker = CircuitBreaker(threshold=1, timeout=0.05)

        async def fail() -> None:
            raise TransportError(ErrorKind.TIMEOUT, "slow")

        with pytest.raises(TransportError):
            await breaker.call(fail)
        await asyncio.sleep(0.06)

        assert await breaker.call(_noop) == "ok"
        assert breaker.status()["state"] == "closed"

    @pytest.mark.asyncio()
    async def test_cancelled_trial_frees_half_open_slot(self) -> None:
        breaker = CircuitBreaker(threshold=1, timeout=0.05)

        async def fail() -> None:
            raise TransportError(ErrorKind.TIMEOUT, "slow")

        with pytest.raises(TransportError):
            await breaker.call(fail)
        await asyncio.sleep(0.06)

        async def hang() -> None:
            await asyncio.sleep(10)

        trial = asyncio.create_task(breaker.call(hang))
        await asyncio.sleep(0)
        trial.cancel()
        with pytest.raises(asyncio.CancelledError):
            await trial

        assert breaker.state == CircuitState.HALF_OPEN
        assert await breaker.call(_noop) == "ok"
        assert breaker.state == CircuitState.CLOSED

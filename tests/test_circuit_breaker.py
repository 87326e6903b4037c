"""Tests for modelcompare/circuit_breaker.py."""

import asyncio

import pytest

from modelcompare.circuit_breaker import BreakerState, CircuitBreaker
from modelcompare.errors import CircuitBreakerError


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def breaker(clock: FakeClock) -> CircuitBreaker:
    return CircuitBreaker("openai", failure_threshold=3, recovery_timeout=30, monitoring_period=60, clock=clock)


async def _ok() -> str:
    return "ok"


async def _boom() -> str:
    raise RuntimeError("boom")


async def _fail(breaker: CircuitBreaker, times: int) -> None:
    for _ in range(times):
        with pytest.raises(RuntimeError):
            await breaker.execute(_boom)


async def test_success_passes_result_through(breaker):
    assert await breaker.execute(_ok) == "ok"
    assert breaker.get_state() is BreakerState.CLOSED


async def test_opens_at_threshold(breaker):
    await _fail(breaker, 2)
    assert breaker.get_state() is BreakerState.CLOSED
    await _fail(breaker, 1)
    assert breaker.get_state() is BreakerState.OPEN
    assert breaker.get_failure_count() == 3


async def test_open_rejects_without_calling(breaker, clock):
    await _fail(breaker, 3)
    called = False

    async def tracked() -> str:
        nonlocal called
        called = True
        return "ok"

    clock.advance(10)
    with pytest.raises(CircuitBreakerError) as exc_info:
        await breaker.execute(tracked)
    assert called is False
    assert exc_info.value.retry_after == 20
    assert exc_info.value.status_code == 503
    assert exc_info.value.context["failureCount"] == 3


async def test_half_open_probe_success_closes(breaker, clock):
    await _fail(breaker, 3)
    clock.advance(31)
    assert await breaker.execute(_ok) == "ok"
    assert breaker.get_state() is BreakerState.CLOSED
    assert breaker.get_failure_count() == 0


async def test_half_open_probe_failure_reopens_with_fresh_timer(breaker, clock):
    await _fail(breaker, 3)
    clock.advance(31)
    await _fail(breaker, 1)
    assert breaker.get_state() is BreakerState.OPEN
    clock.advance(29)
    with pytest.raises(CircuitBreakerError):
        await breaker.execute(_ok)


async def test_failures_outside_window_do_not_accumulate(breaker, clock):
    await _fail(breaker, 2)
    clock.advance(61)
    await _fail(breaker, 1)
    assert breaker.get_state() is BreakerState.CLOSED
    assert breaker.get_failure_count() == 1


async def test_success_resets_failure_count(breaker):
    await _fail(breaker, 2)
    await breaker.execute(_ok)
    assert breaker.get_failure_count() == 0
    await _fail(breaker, 2)
    assert breaker.get_state() is BreakerState.CLOSED


async def test_only_one_half_open_probe_admitted(breaker, clock):
    await _fail(breaker, 3)
    clock.advance(31)
    release = asyncio.Event()

    async def slow_probe() -> str:
        await release.wait()
        return "probe"

    probe = asyncio.create_task(breaker.execute(slow_probe))
    await asyncio.sleep(0)
    assert breaker.get_state() is BreakerState.HALF_OPEN

    with pytest.raises(CircuitBreakerError):
        await breaker.execute(_ok)

    release.set()
    assert await probe == "probe"
    assert breaker.get_state() is BreakerState.CLOSED


async def test_cancellation_is_not_a_failure(breaker):
    async def hang() -> None:
        await asyncio.sleep(3600)

    task = asyncio.create_task(breaker.execute(hang))
    await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert breaker.get_failure_count() == 0


async def test_guard_counts_failures_raised_in_block(breaker):
    for _ in range(3):
        with pytest.raises(ValueError):
            async with breaker.guard():
                raise ValueError("bad stream")
    assert breaker.get_state() is BreakerState.OPEN


async def test_snapshot(breaker, clock):
    assert breaker.snapshot() == {"state": "CLOSED", "failureCount": 0, "retryAfter": 0}
    await _fail(breaker, 3)
    clock.advance(5)
    assert breaker.snapshot() == {"state": "OPEN", "failureCount": 3, "retryAfter": 25}


def test_reset(breaker):
    breaker._state = BreakerState.OPEN
    breaker._failure_count = 7
    breaker.reset()
    assert breaker.get_state() is BreakerState.CLOSED
    assert breaker.get_failure_count() == 0

"""Per-provider circuit breaker.

State transitions are evaluated lazily on each call; there are no background
timers. All bookkeeping happens between awaits, so on a single event loop the
admission check and the state updates cannot interleave with another call.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from enum import Enum
from typing import TypeVar

from modelcompare.errors import CircuitBreakerError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BreakerState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitBreaker:
    """Failure-isolation state machine guarding one provider.

    CLOSED -> OPEN once failure_threshold failures land within
    monitoring_period. OPEN -> HALF_OPEN once recovery_timeout has elapsed
    since the last failure; exactly one probe call is admitted per OPEN period.
    The probe's outcome closes the breaker or reopens it with a fresh timer.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 3,
        recovery_timeout: float = 30.0,
        monitoring_period: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.monitoring_period = monitoring_period
        self._clock = clock
        self._state = BreakerState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float | None = None
        self._probe_in_flight = False

    def get_state(self) -> BreakerState:
        return self._state

    def get_failure_count(self) -> int:
        return self._failure_count

    @property
    def last_failure_time(self) -> float | None:
        return self._last_failure_time

    def retry_after(self) -> int:
        """Whole seconds until the breaker will admit a probe."""
        if self._state is not BreakerState.OPEN or self._last_failure_time is None:
            return 0
        remaining = self.recovery_timeout - (self._clock() - self._last_failure_time)
        return max(1, int(remaining + 0.999))

    def reset(self) -> None:
        self._state = BreakerState.CLOSED
        self._failure_count = 0
        self._last_failure_time = None
        self._probe_in_flight = False

    def snapshot(self) -> dict[str, object]:
        return {
            "state": self._state.value,
            "failureCount": self._failure_count,
            "retryAfter": self.retry_after(),
        }

    def _admit(self) -> bool:
        """Decide whether a call may proceed. Returns True for the half-open probe."""
        if self._state is BreakerState.OPEN:
            elapsed = self._clock() - (self._last_failure_time or 0.0)
            if elapsed < self.recovery_timeout:
                raise CircuitBreakerError(self.name, self._failure_count, self.retry_after())
            self._state = BreakerState.HALF_OPEN
            logger.info("Circuit breaker %s half-open after %.1fs", self.name, elapsed)

        if self._state is BreakerState.HALF_OPEN:
            if self._probe_in_flight:
                raise CircuitBreakerError(self.name, self._failure_count, max(1, int(self.recovery_timeout)))
            self._probe_in_flight = True
            return True
        return False

    def _on_success(self) -> None:
        if self._state is not BreakerState.CLOSED:
            logger.info("Circuit breaker %s closed", self.name)
        self._state = BreakerState.CLOSED
        self._failure_count = 0

    def _on_failure(self) -> None:
        now = self._clock()
        if (
            self._state is BreakerState.CLOSED
            and self._last_failure_time is not None
            and now - self._last_failure_time > self.monitoring_period
        ):
            # Failures outside the window do not accumulate.
            self._failure_count = 0
        self._failure_count += 1
        self._last_failure_time = now

        if self._state is BreakerState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            if self._state is not BreakerState.OPEN:
                logger.warning(
                    "Circuit breaker %s opened after %d failure(s)", self.name, self._failure_count
                )
            self._state = BreakerState.OPEN

    @asynccontextmanager
    async def guard(self) -> AsyncIterator[None]:
        """Admit one call and record its outcome.

        Exceptions raised inside the block count as failures. Cancellation
        (task cancel, client disconnect, generator close) is not a provider
        failure and leaves the counters untouched.
        """
        is_probe = self._admit()
        try:
            yield
        except (asyncio.CancelledError, GeneratorExit):
            raise
        except Exception:
            self._on_failure()
            raise
        else:
            self._on_success()
        finally:
            if is_probe:
                self._probe_in_flight = False

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        async with self.guard():
            return await fn()

"""Circuit breaker for the embedding service and the LLM rewriter.

Both collaborators sit on the search path, so a dead one must fail fast
instead of making every request wait for its timeout. After
``failure_threshold`` consecutive failures the breaker opens and rejects
calls with ``CircuitBreakerError``. Once ``recovery_timeout`` has passed a
single probe call is let through; its outcome closes or reopens the breaker.
Other calls arriving while the probe is in flight are rejected.
"""

import asyncio
import inspect
import time
from enum import Enum
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger("search_service.circuit_breaker")


class CircuitBreakerState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"      # Normal operation
    OPEN = "open"          # Failing, reject calls
    HALF_OPEN = "half_open"  # One probe call in flight


class CircuitBreakerError(Exception):
    """Raised instead of calling a collaborator whose breaker is open."""

    def __init__(self, name: str, retry_after: float = 0.0):
        super().__init__(f"Circuit breaker {name} is open")
        self.name = name
        self.retry_after = retry_after


StateListener = Callable[[str, CircuitBreakerState], None]


class CircuitBreaker:
    """Consecutive-failure circuit breaker for async calls.

    Parameters
    - failure_threshold: Consecutive failures that open the breaker
    - recovery_timeout: Seconds the breaker stays open before a probe
    - expected_exception: Exception type(s) counted as failures; anything
      else propagates without touching the breaker
    - name: Identifier for logs and metrics
    - on_state_change: Optional ``(name, state)`` callback, e.g. a metrics gauge
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        expected_exception: type = Exception,
        name: str = "circuit_breaker",
        on_state_change: Optional[StateListener] = None
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception
        self.name = name
        self.on_state_change = on_state_change

        self.state = CircuitBreakerState.CLOSED
        self.failure_count = 0
        self.rejected_calls = 0
        self.opened_at: Optional[float] = None
        self._probe_in_flight = False
        self._lock = asyncio.Lock()

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        """Run ``func(*args, **kwargs)`` (sync or async) through the breaker."""
        await self._admit()

        try:
            result = func(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
        except self.expected_exception:
            await self._record(success=False)
            raise
        except BaseException:
            # Cancellation and unexpected errors release the probe slot only
            async with self._lock:
                self._probe_in_flight = False
            raise

        await self._record(success=True)
        return result

    def _seconds_until_probe(self) -> float:
        if self.opened_at is None:
            return 0.0
        return max(0.0, self.recovery_timeout - (time.monotonic() - self.opened_at))

    async def _admit(self) -> None:
        async with self._lock:
            if self.state == CircuitBreakerState.CLOSED:
                return

            wait = self._seconds_until_probe()
            if self.state == CircuitBreakerState.OPEN and wait == 0.0:
                self._transition(CircuitBreakerState.HALF_OPEN)
                self._probe_in_flight = True
                return
            if self.state == CircuitBreakerState.HALF_OPEN and not self._probe_in_flight:
                self._probe_in_flight = True
                return

            self.rejected_calls += 1
            logger.warning(
                "Circuit breaker rejected call",
                name=self.name,
                state=self.state.value,
                retry_after_seconds=round(wait, 3)
            )
            raise CircuitBreakerError(self.name, retry_after=wait)

    async def _record(self, success: bool) -> None:
        async with self._lock:
            self._probe_in_flight = False

            if success:
                self.failure_count = 0
                if self.state != CircuitBreakerState.CLOSED:
                    self.opened_at = None
                    self._transition(CircuitBreakerState.CLOSED)
                return

            self.failure_count += 1
            if (
                self.state == CircuitBreakerState.HALF_OPEN
                or self.failure_count >= self.failure_threshold
            ):
                self.opened_at = time.monotonic()
                if self.state != CircuitBreakerState.OPEN:
                    self._transition(CircuitBreakerState.OPEN)

    def _transition(self, state: CircuitBreakerState) -> None:
        logger.info(
            "Circuit breaker state changed",
            name=self.name,
            from_state=self.state.value,
            to_state=state.value,
            failure_count=self.failure_count
        )
        self.state = state
        if self.on_state_change is not None:
            self.on_state_change(self.name, state)

    def get_state(self) -> CircuitBreakerState:
        """Get current circuit breaker state."""
        return self.state

    def get_stats(self) -> dict:
        """Get circuit breaker statistics."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
            "rejected_calls": self.rejected_calls,
            "retry_after_seconds": self._seconds_until_probe(),
            "recovery_timeout": self.recovery_timeout
        }

"""Retry with capped exponential backoff for embedding calls.

Retries only make sense while the search request that triggered them can
still use the answer, so besides ``max_attempts`` a policy can carry a
``time_budget``: a retry whose backoff would end past the budget is not
attempted and the last error is raised instead.
"""

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Type

import structlog

from .circuit_breaker import CircuitBreakerError

logger = structlog.get_logger("search_service.retry")


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy.

    ``retry_if`` can veto a retry for an exception that matches
    ``retryable_exceptions`` (e.g. a 4xx answer that will never succeed).
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 8.0
    exponential_base: float = 2.0
    jitter: bool = True
    retryable_exceptions: Tuple[Type[BaseException], ...] = (Exception,)
    retry_if: Optional[Callable[[BaseException], bool]] = None
    time_budget: Optional[float] = None

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Retry delays must be non-negative")


class RetryHandler:
    """Runs a coroutine function under a ``RetryConfig``.

    An open circuit breaker ends the loop at once: retrying would only be
    rejected again.
    """

    def __init__(self, config: RetryConfig):
        self.config = config

    def backoff_delay(self, attempt: int) -> float:
        """Delay after the zero-based ``attempt`` failed, jittered by +/-10%."""
        delay = min(
            self.config.base_delay * (self.config.exponential_base ** attempt),
            self.config.max_delay
        )
        if self.config.jitter:
            delay += random.uniform(-0.1 * delay, 0.1 * delay)
        return max(delay, 0.0)

    def _should_retry(self, error: BaseException) -> bool:
        if not isinstance(error, self.config.retryable_exceptions):
            return False
        return self.config.retry_if is None or self.config.retry_if(error)

    async def execute_with_retry(
        self,
        func: Callable,
        *args,
        operation_name: str = "unknown",
        **kwargs
    ) -> Any:
        """Await ``func(*args, **kwargs)``, retrying failures the policy allows."""
        started = time.monotonic()
        attempt = 0

        while True:
            try:
                result = await func(*args, **kwargs)
            except CircuitBreakerError:
                logger.warning("Circuit open, not retrying", operation=operation_name, attempt=attempt + 1)
                raise
            except Exception as e:
                if not self._should_retry(e):
                    raise

                attempt += 1
                if attempt >= self.config.max_attempts:
                    logger.error(
                        "Operation failed after all retries",
                        operation=operation_name,
                        attempts=attempt,
                        error=str(e)
                    )
                    raise

                delay = self.backoff_delay(attempt - 1)
                budget = self.config.time_budget
                if budget is not None and time.monotonic() - started + delay > budget:
                    logger.error(
                        "Retry budget exhausted",
                        operation=operation_name,
                        attempts=attempt,
                        time_budget_seconds=budget,
                        error=str(e)
                    )
                    raise

                logger.warning(
                    "Operation failed, retrying",
                    operation=operation_name,
                    attempt=attempt,
                    total_attempts=self.config.max_attempts,
                    delay_seconds=round(delay, 3),
                    error=str(e)
                )
                await asyncio.sleep(delay)
                continue

            if attempt > 0:
                logger.info("Operation succeeded after retry", operation=operation_name, attempt=attempt + 1)
            return result

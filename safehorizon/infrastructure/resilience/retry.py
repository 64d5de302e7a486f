"""
Retry policy with exponential backoff and jitter.

A ``RetryPolicy`` is an immutable value object: it can be shared by any
number of concurrent callers, each ``execute`` call keeps its own attempt
counter and delay.
"""

import math
import time
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Awaitable, Callable, List, Optional, Tuple, Type

import structlog

from safehorizon.infrastructure.monitoring.metrics import RETRY_ATTEMPTS
from safehorizon.shared.clock import Clock, Jitter, system_clock
from safehorizon.shared.exceptions import (
    MaxRetriesExceededError, NetworkError, is_retryable_error
)
from safehorizon.shared.types import T

logger = structlog.get_logger(__name__)


def _round_ms(value: float) -> int:
    """Round half away from zero to whole milliseconds."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration and algorithm for retrying failed operations."""
    max_attempts: int = 3
    initial_delay_ms: int = 1000
    backoff_multiplier: float = 2.0
    max_delay_ms: int = 300_000
    use_jitter: bool = True  # Randomize delays to avoid synchronized retry storms
    retryable_exceptions: Tuple[Type[BaseException], ...] = (NetworkError,)
    retryable_predicate: Optional[Callable[[BaseException], bool]] = None
    clock: Clock = field(default=system_clock, compare=False, repr=False)
    jitter: Jitter = field(default_factory=Jitter, compare=False, repr=False)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("Retry delays cannot be negative")
        if self.backoff_multiplier < 1.0:
            raise ValueError("backoff_multiplier must be at least 1.0")

    def is_retryable(self, exception: BaseException) -> bool:
        """Check if an exception should trigger another attempt."""
        if isinstance(exception, NetworkError):
            return exception.is_retryable
        if self.retryable_predicate is not None and self.retryable_predicate(exception):
            return True
        return is_retryable_error(exception, self.retryable_exceptions)

    def next_delay(self, delay_ms: int) -> int:
        """Backoff step: multiply, round to whole ms, cap at ``max_delay_ms``."""
        return min(_round_ms(delay_ms * self.backoff_multiplier), self.max_delay_ms)

    def jittered(self, delay_ms: int) -> int:
        """Actual sleep for a base delay: ``delay + U[0, delay/2)`` when jitter is on."""
        if not self.use_jitter:
            return delay_ms
        return delay_ms + self.jitter.upto(delay_ms // 2)

    def delays_for(self) -> List[int]:
        """Jitter-free delays (ms) slept between the attempts of one execution."""
        delays = []
        delay = min(self.initial_delay_ms, self.max_delay_ms)
        for _ in range(self.max_attempts - 1):
            delays.append(delay)
            delay = self.next_delay(delay)
        return delays

    async def execute(
        self,
        operation_name: str,
        operation: Callable[[], Awaitable[T]],
        wrap_exhausted: bool = False
    ) -> T:
        """
        Run an operation, retrying retryable failures with backoff.

        Args:
            operation_name: Name used in logs and metrics
            operation: Zero-argument callable returning an awaitable
            wrap_exhausted: Raise MaxRetriesExceededError (chained to the last
                error) instead of the last error once attempts run out

        Returns:
            The operation's result

        Raises:
            The operation's own exception when it is not retryable or attempts
            are exhausted.
        """
        attempt = 0
        delay = min(self.initial_delay_ms, self.max_delay_ms)

        while True:
            attempt += 1
            started = time.perf_counter()

            try:
                result = await operation()
            except Exception as e:
                retryable = self.is_retryable(e)
                has_attempts_left = attempt < self.max_attempts
                RETRY_ATTEMPTS.labels(operation=operation_name, outcome="failure").inc()

                logger.warning(
                    "Operation attempt failed",
                    operation=operation_name,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    exception=type(e).__name__,
                    error=str(e),
                    retryable=retryable,
                    has_attempts_left=has_attempts_left
                )

                if not retryable:
                    raise

                if not has_attempts_left:
                    logger.error(
                        "All retry attempts exhausted",
                        operation=operation_name,
                        max_attempts=self.max_attempts,
                        last_exception=str(e)
                    )
                    if wrap_exhausted:
                        raise MaxRetriesExceededError(operation_name, attempt, e) from e
                    raise

                actual_delay = self.jittered(delay)
                logger.info(
                    "Waiting before retry",
                    operation=operation_name,
                    next_attempt=attempt + 1,
                    delay_ms=actual_delay
                )
                await self.clock.sleep(actual_delay / 1000.0)
                delay = self.next_delay(delay)
                continue

            RETRY_ATTEMPTS.labels(operation=operation_name, outcome="success").inc()
            if attempt > 1:
                logger.info(
                    "Operation succeeded after retry",
                    operation=operation_name,
                    attempt=attempt,
                    duration_ms=round((time.perf_counter() - started) * 1000, 2)
                )
            return result


# Named presets
CONSERVATIVE = RetryPolicy(max_attempts=2, initial_delay_ms=2000, backoff_multiplier=1.5)
AGGRESSIVE = RetryPolicy(max_attempts=5, initial_delay_ms=500, backoff_multiplier=2.0)
NONE = RetryPolicy(max_attempts=1)


def retry(policy: Optional[RetryPolicy] = None, name: Optional[str] = None):
    """
    Decorator to add retry capabilities to an async function.

    Args:
        policy: Retry policy to apply (defaults to ``RetryPolicy()``)
        name: Operation name for logs, defaults to the function's qualified name

    Returns:
        Decorated function with retry capabilities
    """
    retry_policy = policy or RetryPolicy()

    def decorator(func):
        operation_name = name or f"{func.__module__}.{func.__qualname__}"

        @wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            return await retry_policy.execute(operation_name, lambda: func(*args, **kwargs))

        return wrapper
    return decorator

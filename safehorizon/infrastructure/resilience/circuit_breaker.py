"""
Circuit breaker for remote dependencies.

A breaker counts consecutive failures of one logical dependency and, once
the threshold is reached, fails fast for a cooldown period instead of
letting callers pile onto a service that is down.
"""

import asyncio
import inspect
from datetime import datetime
from dataclasses import dataclass
from functools import wraps
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog

from safehorizon.infrastructure.monitoring.metrics import (
    CIRCUIT_BREAKER_REJECTIONS, record_circuit_state
)
from safehorizon.shared.clock import Clock, system_clock
from safehorizon.shared.exceptions import CircuitOpenError
from safehorizon.shared.types import CircuitBreakerState, T

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Configuration for circuit breaker."""
    failure_threshold: int = 5  # Consecutive failures before opening
    retry_delay_seconds: float = 30.0  # Cooldown before a half-open probe
    half_open_max_calls: int = 1  # Probes allowed through while half-open

    def __post_init__(self):
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if self.retry_delay_seconds < 0:
            raise ValueError("retry_delay_seconds cannot be negative")
        if self.half_open_max_calls < 1:
            raise ValueError("half_open_max_calls must be at least 1")


async def _invoke(operation: Callable[[], Any]) -> Any:
    result = operation()
    if inspect.isawaitable(result):
        result = await result
    return result


class CircuitBreaker:
    """Circuit breaker implementation for preventing cascading failures."""

    def __init__(self, name: str, config: Optional[CircuitBreakerConfig] = None, clock: Optional[Clock] = None):
        """
        Initialize circuit breaker.

        Args:
            name: Identifier of the protected dependency
            config: Circuit breaker configuration
            clock: Time source, monotonic time drives the cooldown
        """
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock or system_clock
        self._state = CircuitBreakerState.CLOSED
        self._failure_count = 0
        self._last_failure_at: Optional[datetime] = None
        self._next_retry_at: Optional[float] = None
        self._probes_in_flight = 0
        self._lock = asyncio.Lock()
        record_circuit_state(self.name, self._state)

    @property
    def state(self) -> CircuitBreakerState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def is_open(self) -> bool:
        return self._state == CircuitBreakerState.OPEN

    @property
    def is_half_open(self) -> bool:
        return self._state == CircuitBreakerState.HALF_OPEN

    @property
    def is_closed(self) -> bool:
        return self._state == CircuitBreakerState.CLOSED

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Execute an operation through the circuit breaker.

        Args:
            operation: Zero-argument callable returning an awaitable (or a value)

        Returns:
            The operation's result

        Raises:
            CircuitOpenError: If the breaker rejects the call
        """
        async with self._lock:
            is_probe = self._admit()

        try:
            result = await _invoke(operation)
        except Exception as e:
            async with self._lock:
                self._record_failure(is_probe, e)
            raise
        except BaseException:
            # Cancelled probes give their slot back without deciding anything
            if is_probe:
                self._probes_in_flight = max(0, self._probes_in_flight - 1)
            raise

        async with self._lock:
            self._record_success(is_probe)
        return result

    async def call(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        """Execute ``func(*args, **kwargs)`` through the breaker."""
        return await self.execute(lambda: func(*args, **kwargs))

    def _admit(self) -> bool:
        """Decide whether a call may proceed. Returns True for half-open probes."""
        if self._state == CircuitBreakerState.CLOSED:
            return False

        if self._state == CircuitBreakerState.OPEN:
            if self._next_retry_at is not None and self._clock.monotonic() >= self._next_retry_at:
                self._transition(CircuitBreakerState.HALF_OPEN)
            else:
                self._reject()

        if self._probes_in_flight >= self.config.half_open_max_calls:
            self._reject()

        self._probes_in_flight += 1
        return True

    def _reject(self) -> None:
        CIRCUIT_BREAKER_REJECTIONS.labels(name=self.name).inc()
        logger.warning("Circuit breaker rejected call", name=self.name, failure_count=self._failure_count)
        raise CircuitOpenError(self.name, self._failure_count)

    def _record_success(self, is_probe: bool) -> None:
        if is_probe:
            self._probes_in_flight = max(0, self._probes_in_flight - 1)
            self._failure_count = 0
            self._last_failure_at = None
            self._next_retry_at = None
            self._transition(CircuitBreakerState.CLOSED)
            logger.info("Circuit breaker closed after successful probe", name=self.name)
        elif self._state == CircuitBreakerState.CLOSED:
            self._failure_count = 0

    def _record_failure(self, is_probe: bool, error: Exception) -> None:
        if is_probe:
            self._probes_in_flight = max(0, self._probes_in_flight - 1)
            self._failure_count += 1
            self._last_failure_at = self._clock.now()
            self._open()
            logger.warning("Circuit breaker probe failed", name=self.name, error=str(error))
        elif self._state == CircuitBreakerState.CLOSED:
            self._failure_count += 1
            self._last_failure_at = self._clock.now()
            if self._failure_count >= self.config.failure_threshold:
                self._open()
                logger.error(
                    "Circuit breaker opened",
                    name=self.name,
                    failure_count=self._failure_count,
                    error=str(error)
                )

    def _open(self) -> None:
        self._next_retry_at = self._clock.monotonic() + self.config.retry_delay_seconds
        self._transition(CircuitBreakerState.OPEN)

    def _transition(self, state: CircuitBreakerState) -> None:
        if state == self._state:
            return
        logger.info(
            "Circuit breaker state change",
            name=self.name,
            from_state=self._state.value,
            to_state=state.value
        )
        self._state = state
        record_circuit_state(self.name, state)

    def reset(self) -> None:
        """Force the breaker closed and clear its counters."""
        self._failure_count = 0
        self._last_failure_at = None
        self._next_retry_at = None
        self._probes_in_flight = 0
        self._transition(CircuitBreakerState.CLOSED)
        logger.info("Circuit breaker manually reset", name=self.name)

    def get_status(self) -> Dict[str, Any]:
        """Get current circuit breaker status."""
        retry_in = None
        if self._next_retry_at is not None:
            retry_in = max(0.0, self._next_retry_at - self._clock.monotonic())

        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "last_failure_at": self._last_failure_at.isoformat() if self._last_failure_at else None,
            "retry_in_seconds": retry_in,
        }


class CircuitBreakerRegistry:
    """Registry for the circuit breakers of one engine instance."""

    def __init__(self, default_config: Optional[CircuitBreakerConfig] = None, clock: Optional[Clock] = None):
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._default_config = default_config or CircuitBreakerConfig()
        self._clock = clock or system_clock

    def register(self, breaker: CircuitBreaker) -> CircuitBreaker:
        """Register a circuit breaker."""
        self._breakers[breaker.name] = breaker
        return breaker

    def get_or_create(self, name: str, config: Optional[CircuitBreakerConfig] = None) -> CircuitBreaker:
        """Return the breaker for ``name``, creating it on first use."""
        breaker = self._breakers.get(name)
        if breaker is None:
            breaker = self.register(CircuitBreaker(name, config or self._default_config, self._clock))
            logger.debug("Circuit breaker registered", name=name)
        return breaker

    def get_breaker(self, name: str) -> Optional[CircuitBreaker]:
        """Get circuit breaker by name."""
        return self._breakers.get(name)

    def open_breakers(self) -> Dict[str, CircuitBreaker]:
        return {name: b for name, b in self._breakers.items() if b.is_open}

    def get_all_status(self) -> Dict[str, Dict[str, Any]]:
        """Get status of all registered circuit breakers."""
        return {
            name: breaker.get_status()
            for name, breaker in self._breakers.items()
        }

    def reset_all(self) -> None:
        for breaker in self._breakers.values():
            breaker.reset()

    def __len__(self) -> int:
        return len(self._breakers)


def circuit_breaker(breaker: CircuitBreaker):
    """
    Decorator to route every call of an async function through a breaker.

    Args:
        breaker: Circuit breaker guarding the function's dependency

    Returns:
        Decorated function with circuit breaker protection
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            return await breaker.execute(lambda: func(*args, **kwargs))
        return wrapper
    return decorator

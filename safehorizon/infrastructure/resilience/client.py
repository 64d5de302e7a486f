"""
Composition of the resilience patterns for one remote dependency.

The breaker sits outside the retry loop so an open circuit fails fast
before any attempt is made; a whole retry sequence counts as one breaker
outcome. An optional fallback wraps everything, so a rejected call can
still degrade to a substitute value.
"""

from typing import Any, Awaitable, Callable, Dict, Optional

from safehorizon.infrastructure.resilience.circuit_breaker import CircuitBreaker
from safehorizon.infrastructure.resilience.fallback import FallbackHandler
from safehorizon.infrastructure.resilience.retry import RetryPolicy
from safehorizon.infrastructure.resilience.timeout import with_timeout
from safehorizon.shared.types import T


class ResilientClient:
    """Client wrapper with timeout, retry, circuit breaker and fallback."""

    def __init__(
        self,
        name: str,
        circuit_breaker: Optional[CircuitBreaker] = None,
        retry_policy: Optional[RetryPolicy] = None,
        fallback: Optional[FallbackHandler] = None,
        timeout_seconds: Optional[float] = None
    ):
        """
        Initialize resilient client.

        Args:
            name: Client identifier, used as the retry operation name
            circuit_breaker: Breaker guarding the dependency
            retry_policy: Retry configuration (defaults to ``RetryPolicy()``)
            fallback: Degraded-mode handler applied last
            timeout_seconds: Per-attempt time budget
        """
        self.name = name
        self.circuit_breaker = circuit_breaker
        self.retry_policy = retry_policy or RetryPolicy()
        self.fallback = fallback
        self.timeout_seconds = timeout_seconds

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Execute an operation with all configured protections.

        Args:
            operation: Zero-argument callable returning an awaitable

        Returns:
            Operation result, or the fallback's substitute
        """
        async def attempt() -> T:
            if self.timeout_seconds:
                return await with_timeout(operation, self.timeout_seconds, self.name)
            return await operation()

        async def retried() -> T:
            return await self.retry_policy.execute(self.name, attempt)

        async def guarded() -> T:
            if self.circuit_breaker is not None:
                return await self.circuit_breaker.execute(retried)
            return await retried()

        if self.fallback is not None:
            return await self.fallback.execute(guarded)
        return await guarded()

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Execute ``func(*args, **kwargs)`` with all protections."""
        return await self.execute(lambda: func(*args, **kwargs))

    def get_status(self) -> Dict[str, Any]:
        """Get client status including circuit breaker state."""
        status = {
            "name": self.name,
            "retry_policy": {
                "max_attempts": self.retry_policy.max_attempts,
                "initial_delay_ms": self.retry_policy.initial_delay_ms,
                "backoff_multiplier": self.retry_policy.backoff_multiplier,
            },
            "timeout_seconds": self.timeout_seconds,
            "fallback": self.fallback is not None,
        }

        if self.circuit_breaker:
            status["circuit_breaker"] = self.circuit_breaker.get_status()

        return status

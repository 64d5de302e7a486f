"""
Resilience patterns for fault-tolerant remote calls.

This module provides retry mechanisms, circuit breakers, fallbacks and
timeouts for keeping the application usable when the network misbehaves.
"""

from .circuit_breaker import (
    CircuitBreakerConfig,
    CircuitBreaker,
    CircuitBreakerRegistry,
    circuit_breaker
)
from .retry import (
    RetryPolicy,
    CONSERVATIVE,
    AGGRESSIVE,
    NONE,
    retry
)
from .fallback import FallbackHandler
from .timeout import with_timeout
from .client import ResilientClient

__all__ = [
    "CircuitBreakerConfig",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "circuit_breaker",
    "RetryPolicy",
    "CONSERVATIVE",
    "AGGRESSIVE",
    "NONE",
    "retry",
    "FallbackHandler",
    "with_timeout",
    "ResilientClient"
]

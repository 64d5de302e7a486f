"""
Component health checks.
"""

from .checks import CacheHealthCheck, CircuitBreakerHealthCheck, SyncQueueHealthCheck
from .manager import HealthCheckManager

__all__ = [
    "CacheHealthCheck",
    "CircuitBreakerHealthCheck",
    "SyncQueueHealthCheck",
    "HealthCheckManager"
]

"""
Built-in health checks for the engine's components.
"""

from safehorizon.core.domain.entities import HealthStatus
from safehorizon.core.domain.interfaces import HealthCheck
from safehorizon.infrastructure.cache.store import CacheStore
from safehorizon.infrastructure.resilience.circuit_breaker import CircuitBreakerRegistry
from safehorizon.infrastructure.sync.manager import OfflineSyncManager


class CircuitBreakerHealthCheck(HealthCheck):
    """Unhealthy while any registered breaker is open."""

    def __init__(self, registry: CircuitBreakerRegistry):
        self.registry = registry

    async def check(self) -> HealthStatus:
        details = {"circuit_breakers": self.registry.get_all_status()}
        open_breakers = sorted(self.registry.open_breakers())
        if open_breakers:
            return HealthStatus.unhealthy(
                f"Circuit breakers open: {', '.join(open_breakers)}",
                details
            )
        return HealthStatus.healthy("All circuit breakers closed", details)


class CacheHealthCheck(HealthCheck):
    """Reports cache statistics."""

    def __init__(self, cache: CacheStore):
        self.cache = cache

    async def check(self) -> HealthStatus:
        return HealthStatus.healthy("Cache available", self.cache.get_stats())


class SyncQueueHealthCheck(HealthCheck):
    """Degraded while offline with operations waiting."""

    def __init__(self, sync_manager: OfflineSyncManager):
        self.sync_manager = sync_manager

    async def check(self) -> HealthStatus:
        details = self.sync_manager.get_status()
        if not self.sync_manager.is_online and self.sync_manager.queue_size:
            return HealthStatus.degraded(
                f"Offline with {self.sync_manager.queue_size} pending operations",
                details
            )
        return HealthStatus.healthy("Offline queue draining normally", details)

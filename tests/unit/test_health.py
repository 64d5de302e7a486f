"""
Unit tests for health checks.
"""
import pytest

from safehorizon.core.domain.entities import HealthStatus
from safehorizon.core.domain.interfaces import HealthCheck
from safehorizon.infrastructure.connectivity import ConnectivityMonitor
from safehorizon.infrastructure.health import (
    CacheHealthCheck,
    CircuitBreakerHealthCheck,
    HealthCheckManager,
    SyncQueueHealthCheck
)
from safehorizon.infrastructure.resilience import CircuitBreakerConfig, CircuitBreakerRegistry
from safehorizon.infrastructure.sync import OfflineSyncManager
from safehorizon.shared.config import HealthConfig, SyncConfig
from safehorizon.shared.exceptions import TransientNetworkError
from safehorizon.shared.types import HealthState, OperationType


class StaticCheck(HealthCheck):
    def __init__(self, status: HealthStatus):
        self.status = status

    async def check(self) -> HealthStatus:
        return self.status


class BrokenCheck(HealthCheck):
    async def check(self) -> HealthStatus:
        raise RuntimeError("probe crashed")


class TestHealthCheckManager:
    """Test cases for HealthCheckManager."""

    @pytest.fixture
    def manager(self) -> HealthCheckManager:
        return HealthCheckManager(HealthConfig(check_interval_seconds=3600))

    @pytest.mark.asyncio
    async def test_runs_registered_checks(self, manager):
        manager.register("api", StaticCheck(HealthStatus.healthy()))
        manager.register("queue", StaticCheck(HealthStatus.degraded("backlog")))

        results = await manager.run_checks()

        assert results["api"].is_healthy
        assert results["queue"].state == HealthState.DEGRADED
        assert manager.last_results.keys() == results.keys()

    @pytest.mark.asyncio
    async def test_raising_check_reported_unhealthy(self, manager):
        manager.register("broken", BrokenCheck())

        results = await manager.get_health_status()

        assert results["broken"].state == HealthState.UNHEALTHY
        assert "probe crashed" in results["broken"].message

    @pytest.mark.asyncio
    async def test_unregister(self, manager):
        manager.register("api", StaticCheck(HealthStatus.healthy()))
        manager.unregister("api")

        assert await manager.run_checks() == {}

    @pytest.mark.asyncio
    async def test_overall_status_is_worst_state(self, manager):
        manager.register("api", StaticCheck(HealthStatus.healthy()))
        manager.register("queue", StaticCheck(HealthStatus.degraded("backlog")))

        overall = await manager.get_overall_status()
        assert overall.state == HealthState.DEGRADED
        assert "queue" in overall.message

        manager.register("broken", BrokenCheck())
        overall = await manager.get_overall_status()
        assert overall.state == HealthState.UNHEALTHY
        assert overall.details["api"]["is_healthy"] is True

    @pytest.mark.asyncio
    async def test_overall_status_without_checks(self, manager):
        assert (await manager.get_overall_status()).is_healthy

    @pytest.mark.asyncio
    async def test_initialize_and_close(self, manager):
        await manager.initialize()
        await manager.close()


class TestBuiltinChecks:
    """Test cases for the component health checks."""

    @pytest.mark.asyncio
    async def test_circuit_breaker_check(self, manual_clock):
        registry = CircuitBreakerRegistry(CircuitBreakerConfig(failure_threshold=1), manual_clock)
        breaker = registry.get_or_create("alerts")
        check = CircuitBreakerHealthCheck(registry)

        assert (await check.check()).is_healthy

        async def fail():
            raise TransientNetworkError("connection refused")

        with pytest.raises(TransientNetworkError):
            await breaker.execute(fail)

        status = await check.check()
        assert status.state == HealthState.UNHEALTHY
        assert "alerts" in status.message
        assert status.details["circuit_breakers"]["alerts"]["state"] == "open"

    @pytest.mark.asyncio
    async def test_cache_check_reports_stats(self, memory_cache):
        await memory_cache.set("a", 1)

        status = await CacheHealthCheck(memory_cache).check()

        assert status.is_healthy
        assert status.details["memory_size"] == 1

    @pytest.mark.asyncio
    async def test_sync_queue_degraded_while_offline_with_backlog(self, fake_probe, memory_store):
        monitor = ConnectivityMonitor(fake_probe, initial_online=False)
        manager = OfflineSyncManager(monitor, memory_store, config=SyncConfig())
        check = SyncQueueHealthCheck(manager)

        assert (await check.check()).is_healthy

        await manager.queue_operation(OperationType.DATA_UPDATE, {"resource": "profile"})
        status = await check.check()

        assert status.state == HealthState.DEGRADED
        assert status.details["queue_size"] == 1

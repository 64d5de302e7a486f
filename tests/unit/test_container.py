"""
Unit tests for dependency injection wiring.
"""
import json

import pytest

from safehorizon.core.domain.interfaces import ConnectivityProbe, KeyValueStore
from safehorizon.infrastructure.cache import CacheStore
from safehorizon.infrastructure.connectivity import ConnectivityMonitor
from safehorizon.infrastructure.di import DIContainer, container_scope, create_container
from safehorizon.infrastructure.health import HealthCheckManager
from safehorizon.infrastructure.resilience import CircuitBreakerRegistry, RetryPolicy
from safehorizon.infrastructure.sync import ExecutorRegistry, OfflineSyncManager
from safehorizon.shared.config import BreakerSettings
from safehorizon.shared.types import OperationType

from tests.conftest import FakeProbe


class Greeter:
    def __init__(self, name: str = "world"):
        self.name = name
        self.closed = False

    def close(self):
        self.closed = True


class TestDIContainer:
    """Test cases for DIContainer."""

    @pytest.mark.asyncio
    async def test_unregistered_dependency(self):
        with pytest.raises(ValueError, match="not registered"):
            await DIContainer().resolve(Greeter)

    @pytest.mark.asyncio
    async def test_singleton_and_transient(self):
        container = DIContainer()
        container.register_singleton(Greeter, Greeter)

        assert await container.resolve(Greeter) is await container.resolve(Greeter)

        transient = DIContainer()
        transient.register_transient(Greeter, Greeter)
        assert await transient.resolve(Greeter) is not await transient.resolve(Greeter)

    @pytest.mark.asyncio
    async def test_factory_dependencies_injected(self):
        container = DIContainer()
        container.register_instance(str, "SafeHorizon")

        async def create_greeter(name: str) -> Greeter:
            return Greeter(name)

        container.register_factory(Greeter, create_greeter, singleton=True)

        greeter = await container.resolve(Greeter)
        assert greeter.name == "SafeHorizon"
        assert await container.resolve(Greeter) is greeter

    @pytest.mark.asyncio
    async def test_cleanup_closes_started_components_only(self):
        container = DIContainer()
        started = Greeter()
        idle = Greeter()
        container.register_instance(Greeter, started)
        container.register_instance(str, idle)

        await container.start(Greeter)
        await container.cleanup()

        assert started.closed
        assert not idle.closed


class TestEngineWiring:
    """Test cases for the engine's service providers."""

    @pytest.mark.asyncio
    async def test_components_resolved_once(self, engine_config, manual_clock):
        container = await create_container(engine_config, clock=manual_clock, overrides={ConnectivityProbe: FakeProbe()})

        cache = await container.resolve(CacheStore)
        assert await container.resolve(CacheStore) is cache
        sync_manager = await container.resolve(OfflineSyncManager)
        assert sync_manager.connectivity is await container.resolve(ConnectivityMonitor)
        assert sync_manager.executors is await container.resolve(ExecutorRegistry)
        assert cache.config == engine_config.cache

    @pytest.mark.asyncio
    async def test_breaker_settings_applied(self, engine_config, manual_clock):
        config = engine_config.model_copy(update={"breaker": BreakerSettings(failure_threshold=2)})
        container = await create_container(config, clock=manual_clock)

        registry = await container.resolve(CircuitBreakerRegistry)

        assert registry.get_or_create("api").config.failure_threshold == 2

    @pytest.mark.asyncio
    async def test_retry_policy_uses_engine_clock(self, engine_config, manual_clock):
        container = await create_container(engine_config, clock=manual_clock)

        policy = await container.resolve(RetryPolicy)

        assert policy.clock is manual_clock
        assert policy.max_attempts == 3

    @pytest.mark.asyncio
    async def test_scope_runs_engine(self, engine_config, tmp_path):
        delivered = []

        async def send_alert(payload):
            delivered.append(payload)
            return True

        probe = FakeProbe(online=False)
        async with container_scope(engine_config, overrides={ConnectivityProbe: probe}) as container:
            sync_manager = await container.resolve(OfflineSyncManager)
            sync_manager.register_executor(OperationType.ALERT_CREATE, send_alert)
            await sync_manager.queue_operation(OperationType.ALERT_CREATE, {"alert_type": "panic"})

            health = await container.resolve(HealthCheckManager)
            assert (await health.get_overall_status()).details["sync_queue"]["state"] == "degraded"

            await (await container.resolve(ConnectivityMonitor)).report(True)
            await sync_manager.wait_for_sync()

        assert [p["alert_type"] for p in delivered] == ["panic"]
        store = tmp_path / "state" / "pending_operations.json"
        assert json.loads(store.read_text()) == []

    @pytest.mark.asyncio
    async def test_state_store_override(self, engine_config, memory_store):
        container = await create_container(
            engine_config,
            overrides={ConnectivityProbe: FakeProbe(), KeyValueStore: memory_store}
        )

        sync_manager = await container.resolve(OfflineSyncManager)
        await sync_manager.queue_operation(OperationType.DATA_UPDATE, {"resource": "profile"})

        assert await memory_store.read(engine_config.sync.storage_key) is not None
        await sync_manager.wait_for_sync()

"""
Dependency Injection Container.

This module wires the engine's components together. Each container owns one
instance of every long-lived component, starts them in dependency order and
closes them in reverse order on shutdown.
"""

from typing import TypeVar, Type, Callable, Dict, Any, List, Optional, Sequence
from abc import ABC, abstractmethod
import inspect
from contextlib import asynccontextmanager

import structlog

from safehorizon.shared.clock import Clock, system_clock
from safehorizon.shared.config import EngineConfig

logger = structlog.get_logger(__name__)

T = TypeVar('T')


def _type_name(interface: Any) -> str:
    return getattr(interface, "__name__", str(interface))


class DIContainer:
    """
    Dependency Injection Container with lifecycle management.

    Provides registration and resolution of dependencies with support for:
    - Singleton and transient lifecycles
    - Factory functions, optionally cached as singletons
    - Interface to implementation mapping
    - Async dependency resolution
    - Ordered start-up and shutdown of components
    """

    def __init__(self):
        """Initialize container."""
        self._singletons: Dict[Type, Any] = {}
        self._transients: Dict[Type, Callable] = {}
        self._factories: Dict[Type, Callable] = {}
        self._singleton_factories: Dict[Type, Callable] = {}
        self._interfaces: Dict[Type, Type] = {}
        self._started: List[Any] = []

    def register_singleton(self, interface: Type[T], implementation: Type[T]) -> None:
        """
        Register a singleton dependency.

        Args:
            interface: Abstract interface type
            implementation: Concrete implementation type
        """
        logger.debug("Registering singleton", interface=_type_name(interface), implementation=_type_name(implementation))
        self._interfaces[interface] = implementation

    def register_transient(self, interface: Type[T], implementation: Type[T]) -> None:
        """
        Register a transient dependency (new instance each time).

        Args:
            interface: Abstract interface type
            implementation: Concrete implementation type
        """
        logger.debug("Registering transient", interface=_type_name(interface), implementation=_type_name(implementation))
        self._transients[interface] = implementation

    def register_factory(self, interface: Type[T], factory: Callable[..., T], singleton: bool = False) -> None:
        """
        Register a factory function for dependency creation.

        Args:
            interface: Interface type
            factory: Factory function that creates instances
            singleton: Cache the first instance the factory creates
        """
        logger.debug("Registering factory", interface=_type_name(interface), singleton=singleton)
        if singleton:
            self._singleton_factories[interface] = factory
        else:
            self._factories[interface] = factory

    def register_instance(self, interface: Type[T], instance: T) -> None:
        """
        Register a specific instance as singleton.

        Args:
            interface: Interface type
            instance: Pre-created instance
        """
        logger.debug("Registering instance", interface=_type_name(interface))
        self._singletons[interface] = instance

    def is_registered(self, interface: Type) -> bool:
        return any(
            interface in registry
            for registry in (
                self._singletons, self._factories, self._singleton_factories,
                self._interfaces, self._transients
            )
        )

    async def resolve(self, interface: Type[T]) -> T:
        """
        Resolve a dependency by interface type.

        Args:
            interface: Interface type to resolve

        Returns:
            Instance of the requested type

        Raises:
            ValueError: If dependency is not registered
        """
        # Check if we have a pre-created singleton instance
        if interface in self._singletons:
            return self._singletons[interface]

        if interface in self._singleton_factories:
            instance = await self._create_with_dependencies(self._singleton_factories[interface])
            self._singletons[interface] = instance
            return instance

        if interface in self._factories:
            return await self._create_with_dependencies(self._factories[interface])

        if interface in self._interfaces:
            instance = await self._create_with_dependencies(self._interfaces[interface])
            self._singletons[interface] = instance
            return instance

        if interface in self._transients:
            return await self._create_with_dependencies(self._transients[interface])

        raise ValueError(f"Dependency {_type_name(interface)} is not registered")

    async def _create_with_dependencies(self, cls_or_func: Callable) -> Any:
        """
        Create instance with automatic dependency injection.

        Args:
            cls_or_func: Class or function to instantiate

        Returns:
            Created instance with injected dependencies
        """
        sig = inspect.signature(cls_or_func)

        kwargs = {}
        for param_name, param in sig.parameters.items():
            if param.annotation is inspect.Parameter.empty:
                continue
            try:
                kwargs[param_name] = await self.resolve(param.annotation)
            except ValueError:
                # Unregistered optional dependencies keep their defaults
                if param.default is inspect.Parameter.empty:
                    logger.warning(
                        "Cannot resolve required dependency",
                        parameter=param_name,
                        type=_type_name(param.annotation)
                    )

        if inspect.iscoroutinefunction(cls_or_func):
            return await cls_or_func(**kwargs)
        return cls_or_func(**kwargs)

    async def start(self, *interfaces: Type) -> None:
        """
        Resolve components and run their ``initialize()`` in the given order.

        Only started components are closed by ``cleanup``.
        """
        for interface in interfaces:
            instance = await self.resolve(interface)
            if any(instance is started for started in self._started):
                continue

            initialize = getattr(instance, "initialize", None)
            if callable(initialize):
                result = initialize()
                if inspect.isawaitable(result):
                    await result
            self._started.append(instance)

    async def cleanup(self) -> None:
        """Close started components in reverse start order."""
        logger.info("Cleaning up DI container")

        while self._started:
            instance = self._started.pop()
            close = getattr(instance, "close", None)
            if not callable(close):
                continue
            try:
                result = close()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error("Error during cleanup", component=type(instance).__name__, error=str(e))

        self._singletons.clear()


class ServiceProvider(ABC):
    """Abstract base class for service providers."""

    @abstractmethod
    async def configure(self, container: DIContainer) -> None:
        """Configure services in the container."""
        pass


class ResilienceServiceProvider(ServiceProvider):
    """Circuit breakers and retry policies."""

    async def configure(self, container: DIContainer) -> None:
        from safehorizon.infrastructure.resilience import (
            CircuitBreakerConfig,
            CircuitBreakerRegistry,
            RetryPolicy
        )

        def create_breaker_registry(config: EngineConfig, clock: Clock) -> CircuitBreakerRegistry:
            settings = config.breaker
            return CircuitBreakerRegistry(
                CircuitBreakerConfig(
                    failure_threshold=settings.failure_threshold,
                    retry_delay_seconds=settings.retry_delay_seconds,
                    half_open_max_calls=settings.half_open_max_calls,
                ),
                clock
            )

        container.register_factory(CircuitBreakerRegistry, create_breaker_registry, singleton=True)
        container.register_transient(RetryPolicy, RetryPolicy)

        logger.info("Resilience services configured")


class CacheServiceProvider(ServiceProvider):
    """Service provider for cache-related dependencies."""

    async def configure(self, container: DIContainer) -> None:
        """Configure cache services."""
        from safehorizon.core.domain.interfaces import Serializer
        from safehorizon.infrastructure.cache import CacheStore, JsonSerializer

        if not container.is_registered(Serializer):
            container.register_instance(Serializer, JsonSerializer())

        def create_cache_store(config: EngineConfig, serializer: Serializer, clock: Clock) -> CacheStore:
            return CacheStore(config.cache, serializer=serializer, clock=clock)

        container.register_factory(CacheStore, create_cache_store, singleton=True)

        logger.info("Cache services configured")


class SyncServiceProvider(ServiceProvider):
    """Connectivity monitoring and the offline operation queue."""

    async def configure(self, container: DIContainer) -> None:
        from safehorizon.core.domain.interfaces import ConnectivityProbe, KeyValueStore, Serializer
        from safehorizon.infrastructure.cache import FileKeyValueStore
        from safehorizon.infrastructure.connectivity import ConnectivityMonitor, DnsProbe
        from safehorizon.infrastructure.sync import ExecutorRegistry, OfflineSyncManager

        if not container.is_registered(ConnectivityProbe):
            def create_probe(config: EngineConfig) -> ConnectivityProbe:
                settings = config.connectivity
                return DnsProbe(settings.probe_host, settings.probe_port, settings.probe_timeout_seconds)

            container.register_factory(ConnectivityProbe, create_probe, singleton=True)

        if not container.is_registered(KeyValueStore):
            def create_state_store(config: EngineConfig) -> KeyValueStore:
                return FileKeyValueStore(config.sync.storage_directory)

            container.register_factory(KeyValueStore, create_state_store, singleton=True)

        def create_monitor(config: EngineConfig, probe: ConnectivityProbe) -> ConnectivityMonitor:
            return ConnectivityMonitor(probe, config.connectivity)

        def create_sync_manager(
            config: EngineConfig,
            connectivity: ConnectivityMonitor,
            store: KeyValueStore,
            executors: ExecutorRegistry,
            serializer: Serializer,
            clock: Clock
        ) -> OfflineSyncManager:
            return OfflineSyncManager(connectivity, store, executors, config.sync, serializer, clock)

        container.register_factory(ConnectivityMonitor, create_monitor, singleton=True)
        container.register_singleton(ExecutorRegistry, ExecutorRegistry)
        container.register_factory(OfflineSyncManager, create_sync_manager, singleton=True)

        logger.info("Sync services configured")


class HealthServiceProvider(ServiceProvider):
    """Health checks over the other components."""

    async def configure(self, container: DIContainer) -> None:
        from safehorizon.infrastructure.cache import CacheStore
        from safehorizon.infrastructure.health import (
            CacheHealthCheck,
            CircuitBreakerHealthCheck,
            HealthCheckManager,
            SyncQueueHealthCheck
        )
        from safehorizon.infrastructure.resilience import CircuitBreakerRegistry
        from safehorizon.infrastructure.sync import OfflineSyncManager

        def create_health_manager(
            config: EngineConfig,
            breakers: CircuitBreakerRegistry,
            cache: CacheStore,
            sync_manager: OfflineSyncManager
        ) -> HealthCheckManager:
            manager = HealthCheckManager(config.health)
            manager.register("circuit_breakers", CircuitBreakerHealthCheck(breakers))
            manager.register("cache", CacheHealthCheck(cache))
            manager.register("sync_queue", SyncQueueHealthCheck(sync_manager))
            return manager

        container.register_factory(HealthCheckManager, create_health_manager, singleton=True)

        logger.info("Health services configured")


def default_providers() -> List[ServiceProvider]:
    return [
        ResilienceServiceProvider(),
        CacheServiceProvider(),
        SyncServiceProvider(),
        HealthServiceProvider(),
    ]


async def create_container(
    config: Optional[EngineConfig] = None,
    providers: Optional[Sequence[ServiceProvider]] = None,
    clock: Optional[Clock] = None,
    overrides: Optional[Dict[Type, Any]] = None
) -> DIContainer:
    """
    Build a configured container.

    Args:
        config: Engine configuration, defaults to ``EngineConfig.from_env()``
        providers: Service providers, defaults to all engine services
        clock: Time source shared by every component
        overrides: Pre-built instances registered before the providers run

    Returns:
        Configured DI container instance
    """
    container = DIContainer()
    container.register_instance(EngineConfig, config or EngineConfig.from_env())
    container.register_instance(Clock, clock or system_clock)

    for interface, instance in (overrides or {}).items():
        container.register_instance(interface, instance)

    for provider in providers if providers is not None else default_providers():
        await provider.configure(container)

    logger.info("DI container initialized")
    return container


async def start_engine(container: DIContainer) -> None:
    """Start the engine's long-lived components in dependency order."""
    from safehorizon.infrastructure.cache import CacheStore
    from safehorizon.infrastructure.connectivity import ConnectivityMonitor
    from safehorizon.infrastructure.health import HealthCheckManager
    from safehorizon.infrastructure.sync import OfflineSyncManager

    await container.start(CacheStore, ConnectivityMonitor, OfflineSyncManager, HealthCheckManager)


@asynccontextmanager
async def container_scope(
    config: Optional[EngineConfig] = None,
    clock: Optional[Clock] = None,
    overrides: Optional[Dict[Type, Any]] = None,
    setup_logging: bool = False
):
    """Context manager for a running engine."""
    config = config or EngineConfig.from_env()
    if setup_logging:
        from safehorizon.infrastructure.logging import configure_logging
        configure_logging(config.log_level, config.json_logs)

    container = await create_container(config, clock=clock, overrides=overrides)
    try:
        await start_engine(container)
        yield container
    finally:
        await container.cleanup()

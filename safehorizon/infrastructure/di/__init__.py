"""
Dependency Injection infrastructure.

This module provides dependency injection capabilities following the
Dependency Inversion Principle for loose coupling and testability.
"""

from .container import (
    DIContainer,
    ServiceProvider,
    ResilienceServiceProvider,
    CacheServiceProvider,
    SyncServiceProvider,
    HealthServiceProvider,
    default_providers,
    create_container,
    start_engine,
    container_scope
)

__all__ = [
    "DIContainer",
    "ServiceProvider",
    "ResilienceServiceProvider",
    "CacheServiceProvider",
    "SyncServiceProvider",
    "HealthServiceProvider",
    "default_providers",
    "create_container",
    "start_engine",
    "container_scope"
]

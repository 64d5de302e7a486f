"""
Global pytest configuration and fixtures for SafeHorizon tests.
"""
import asyncio
import random
from typing import List

import pytest

from safehorizon.core.domain.interfaces import ConnectivityProbe
from safehorizon.infrastructure.cache import CacheStore, MemoryKeyValueStore
from safehorizon.shared.clock import Clock, Jitter
from safehorizon.shared.config import (
    CacheConfig,
    ConnectivityConfig,
    EngineConfig,
    HealthConfig,
    SyncConfig
)


class ManualClock(Clock):
    """Clock that only moves when told to; sleeps advance it instantly."""

    def __init__(self, start: float = 1_700_000_000.0):
        self._wall = start
        self._monotonic = 0.0
        self.sleeps: List[float] = []

    def monotonic(self) -> float:
        return self._monotonic

    def time(self) -> float:
        return self._wall

    def advance(self, seconds: float) -> None:
        self._wall += seconds
        self._monotonic += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)
        await asyncio.sleep(0)


class FakeProbe(ConnectivityProbe):
    """Reachability probe whose answer is set by the test."""

    def __init__(self, online: bool = True):
        self.online = online
        self.calls = 0

    async def check(self) -> bool:
        self.calls += 1
        return self.online


@pytest.fixture
def manual_clock() -> ManualClock:
    """Deterministic clock for testing."""
    return ManualClock()


@pytest.fixture
def seeded_jitter() -> Jitter:
    """Reproducible jitter source."""
    return Jitter(random.Random(1234))


@pytest.fixture
def memory_store() -> MemoryKeyValueStore:
    """In-memory byte store."""
    return MemoryKeyValueStore()


@pytest.fixture
def fake_probe() -> FakeProbe:
    """Probe reporting online until told otherwise."""
    return FakeProbe(online=True)


@pytest.fixture
def cache_config(tmp_path) -> CacheConfig:
    """Small cache rooted in a temporary directory."""
    return CacheConfig(directory=str(tmp_path / "cache"), max_memory_entries=5)


@pytest.fixture
def memory_cache(manual_clock: ManualClock, memory_store: MemoryKeyValueStore) -> CacheStore:
    """Cache store whose disk tier lives in memory."""
    return CacheStore(CacheConfig(directory="unused"), disk=memory_store, clock=manual_clock)


@pytest.fixture
def engine_config(tmp_path) -> EngineConfig:
    """Engine configuration with all state under a temporary directory."""
    return EngineConfig(
        cache=CacheConfig(directory=str(tmp_path / "cache")),
        connectivity=ConnectivityConfig(check_interval_seconds=3600),
        sync=SyncConfig(storage_directory=str(tmp_path / "state"), sync_interval_seconds=3600),
        health=HealthConfig(check_interval_seconds=3600),
        json_logs=False,
    )

"""
Two-tier cache store.

Reads check the in-memory tier, then the disk tier (promoting hits back
into memory), and count every outcome. Writes always land in memory and,
when the value survives encoding unchanged, on disk. The memory tier is
bounded: once it grows past capacity the lowest-priority, oldest entries are evicted.
"""

import asyncio
import hashlib
import math
from typing import Any, Dict, Optional

import structlog

from safehorizon.core.domain.entities import CacheEntry
from safehorizon.core.domain.interfaces import KeyValueStore, Serializer
from safehorizon.infrastructure.cache.serialization import JsonSerializer
from safehorizon.infrastructure.cache.storage import FileKeyValueStore
from safehorizon.infrastructure.monitoring.metrics import CACHE_EVICTIONS, CACHE_LOOKUPS
from safehorizon.infrastructure.scheduling import PeriodicTask
from safehorizon.shared.clock import Clock, system_clock
from safehorizon.shared.config import CacheConfig
from safehorizon.shared.contracts import non_empty_string, optional_positive, require
from safehorizon.shared.exceptions import SerializationError, StorageError

logger = structlog.get_logger(__name__)

DISK_SUFFIX = ".cache"


def hash_key(key: str) -> str:
    """Fixed-length on-disk identifier for a cache key."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


class CacheStore:
    """Memory + disk cache with TTL, priority eviction and hit statistics."""

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        disk: Optional[KeyValueStore] = None,
        serializer: Optional[Serializer] = None,
        clock: Optional[Clock] = None
    ):
        """
        Initialize cache store.

        Args:
            config: Cache configuration
            disk: Byte store for the disk tier, defaults to files under
                ``config.directory``
            serializer: Encoder for disk records
            clock: Wall-clock source for entry timestamps
        """
        self.config = config or CacheConfig()
        self._disk = disk if disk is not None else FileKeyValueStore(self.config.directory, suffix=DISK_SUFFIX)
        self._serializer = serializer or JsonSerializer()
        self._clock = clock or system_clock
        self._memory: Dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()
        self._memory_hits = 0
        self._disk_hits = 0
        self._misses = 0
        self._cleanup_task = PeriodicTask(
            "cache-cleanup", self.config.cleanup_interval_seconds, self._scheduled_cleanup
        )

    async def initialize(self) -> None:
        """Start the periodic expiry sweep."""
        self._cleanup_task.start()
        logger.info(
            "Cache store initialized",
            directory=self.config.directory,
            max_memory_entries=self.config.max_memory_entries
        )

    async def close(self) -> None:
        """Stop the sweep and run it one last time."""
        await self._cleanup_task.stop()
        await self.purge_expired()
        logger.info("Cache store closed")

    @require(lambda max_age, **_: optional_positive(max_age), "max_age must be positive")
    async def get(self, key: str, max_age: Optional[float] = None, memory_only: bool = False) -> Optional[Any]:
        """
        Look a key up, memory tier first.

        Args:
            key: Cache key
            max_age: Reject entries older than this many seconds
            memory_only: Skip the disk tier

        Returns:
            Cached value, or None on a miss
        """
        now = self._clock.time()

        async with self._lock:
            entry = self._memory.get(key)
            if entry is not None and entry.is_fresh(now, max_age):
                self._memory_hits += 1
                CACHE_LOOKUPS.labels(outcome="memory_hit").inc()
                return entry.data

        if not memory_only:
            entry = await self._read_disk(key)
            if entry is not None and entry.is_fresh(now, max_age):
                async with self._lock:
                    current = self._memory.get(key)
                    if current is not None and current.created_at >= entry.created_at:
                        # A set() landed while the disk read was in flight
                        if current.is_fresh(now, max_age):
                            self._memory_hits += 1
                            CACHE_LOOKUPS.labels(outcome="memory_hit").inc()
                            return current.data
                    else:
                        self._disk_hits += 1
                        self._set_memory(key, entry)
                        CACHE_LOOKUPS.labels(outcome="disk_hit").inc()
                        return entry.data

        async with self._lock:
            self._misses += 1
        CACHE_LOOKUPS.labels(outcome="miss").inc()
        return None

    @require(lambda key, **_: non_empty_string(key), "Cache key cannot be empty")
    @require(lambda priority, **_: priority >= 1, "Cache priority must be at least 1")
    @require(lambda ttl, **_: optional_positive(ttl), "Cache TTL must be positive")
    async def set(
        self,
        key: str,
        data: Any,
        ttl: Optional[float] = None,
        priority: int = 1,
        metadata: Optional[Dict[str, Any]] = None,
        memory_only: bool = False
    ) -> None:
        """
        Store a value.

        Args:
            key: Cache key
            data: Value to cache
            ttl: Lifetime in seconds, None for the configured default
            priority: Eviction priority, higher survives longer
            metadata: Free-form metadata kept with the entry
            memory_only: Never write this entry to disk
        """
        entry = CacheEntry(
            data=data,
            created_at=self._clock.time(),
            ttl=ttl if ttl is not None else self.config.default_ttl_seconds,
            priority=priority,
            metadata=dict(metadata or {}),
            content_hash=self._serializer.fingerprint(data),
        )

        async with self._lock:
            self._set_memory(key, entry)

        if not memory_only:
            await self._write_disk(key, entry)

        logger.debug("Cache set", key=key, ttl_seconds=entry.ttl, priority=priority)

    async def get_entry(self, key: str) -> Optional[CacheEntry]:
        """Raw memory-tier entry, expired or not; statistics are not touched."""
        async with self._lock:
            return self._memory.get(key)

    async def remove(self, key: str) -> None:
        """Remove a single entry from both tiers."""
        async with self._lock:
            self._memory.pop(key, None)

        try:
            await self._disk.delete(hash_key(key))
        except StorageError as e:
            logger.debug("Cache remove failed", key=key, error=str(e))

    async def clear(self) -> None:
        """Purge both tiers entirely."""
        async with self._lock:
            self._memory.clear()

        try:
            for disk_key in await self._disk.keys():
                await self._disk.delete(disk_key)
        except StorageError as e:
            logger.error("Cache clear failed", error=str(e))
            return

        logger.info("Cache cleared")

    async def purge_expired(self) -> Dict[str, int]:
        """
        Drop expired entries from both tiers.

        Disk records that cannot be read or decoded are treated as expired.

        Returns:
            Number of entries removed per tier
        """
        now = self._clock.time()

        async with self._lock:
            expired = [key for key, entry in self._memory.items() if entry.is_expired(now)]
            for key in expired:
                del self._memory[key]

        disk_removed = 0
        try:
            disk_keys = await self._disk.keys()
        except StorageError as e:
            logger.error("Disk cache cleanup failed", error=str(e))
            disk_keys = []

        for disk_key in disk_keys:
            try:
                raw = await self._disk.read(disk_key)
                if raw is None:
                    continue
                record = self._serializer.decode(raw)
                entry = CacheEntry.from_dict(record["entry"])
                if not entry.is_expired(now):
                    continue
            except (StorageError, SerializationError, KeyError, TypeError, ValueError) as e:
                logger.debug("Unreadable disk cache record removed", disk_key=disk_key, error=str(e))

            try:
                if await self._disk.delete(disk_key):
                    disk_removed += 1
            except StorageError as e:
                logger.debug("Disk cache delete failed", disk_key=disk_key, error=str(e))

        if expired or disk_removed:
            CACHE_EVICTIONS.labels(reason="expired").inc(len(expired) + disk_removed)
            logger.info("Expired cache entries purged", memory=len(expired), disk=disk_removed)

        return {"memory": len(expired), "disk": disk_removed}

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        hits = self._memory_hits + self._disk_hits
        total = hits + self._misses
        return {
            "memory_size": len(self._memory),
            "memory_hits": self._memory_hits,
            "disk_hits": self._disk_hits,
            "misses": self._misses,
            "hit_rate": hits / total if total else 0.0,
        }

    @property
    def memory_size(self) -> int:
        return len(self._memory)

    def _set_memory(self, key: str, entry: CacheEntry) -> None:
        # Caller holds self._lock
        self._memory[key] = entry
        if len(self._memory) > self.config.max_memory_entries:
            self._evict_memory()

    def _evict_memory(self) -> None:
        victims = sorted(
            self._memory.items(),
            key=lambda item: (item[1].priority, item[1].created_at)
        )
        remove_count = math.ceil(self.config.max_memory_entries * self.config.eviction_fraction)
        for key, _ in victims[:remove_count]:
            del self._memory[key]

        CACHE_EVICTIONS.labels(reason="capacity").inc(min(remove_count, len(victims)))
        logger.info(
            "Memory cache eviction",
            evicted=min(remove_count, len(victims)),
            remaining=len(self._memory)
        )

    async def _read_disk(self, key: str) -> Optional[CacheEntry]:
        disk_key = hash_key(key)
        try:
            raw = await self._disk.read(disk_key)
            if raw is None:
                return None
            record = self._serializer.decode(raw)
            if record.get("key") != key:
                return None
            return CacheEntry.from_dict(record["entry"])
        except (StorageError, SerializationError, AttributeError, KeyError, TypeError, ValueError) as e:
            logger.debug("Disk cache read failed", key=key, error=str(e))
            return None

    async def _write_disk(self, key: str, entry: CacheEntry) -> None:
        try:
            raw = self._serializer.encode({"key": key, "entry": entry.to_dict()})
            if self._serializer.decode(raw)["entry"]["data"] != entry.data:
                raise SerializationError(
                    "Value does not survive encoding unchanged",
                    details={"type": type(entry.data).__name__}
                )
        except SerializationError as e:
            logger.debug("Cache value kept in memory only", key=key, reason=str(e))
            return

        try:
            await self._disk.write(hash_key(key), raw)
        except StorageError as e:
            logger.debug("Disk cache write failed", key=key, error=str(e))

    async def _scheduled_cleanup(self) -> None:
        await self.purge_expired()

"""
Multi-layer caching.

In-memory and on-disk tiers with TTL, priority eviction, statistics and a
stale-while-revalidate loader, plus the persistent byte stores they share
with the offline queue.
"""

from .serialization import JsonSerializer
from .storage import FileKeyValueStore, MemoryKeyValueStore
from .store import CacheStore, hash_key
from .loader import ProgressiveLoader

__all__ = [
    "JsonSerializer",
    "FileKeyValueStore",
    "MemoryKeyValueStore",
    "CacheStore",
    "hash_key",
    "ProgressiveLoader"
]

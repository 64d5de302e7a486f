"""
Offline operation queue and replay.
"""

from .executors import ExecutorRegistry
from .manager import OfflineSyncManager

__all__ = [
    "ExecutorRegistry",
    "OfflineSyncManager"
]

"""
Persistent byte stores.

``FileKeyValueStore`` keeps one file per key in a directory and is used for
both the disk cache tier and the offline queue's durable slot. Writes go
to a temporary file that is fsynced and then renamed over the target, so a
crash never leaves a half-written value behind.
"""

import asyncio
import os
import re
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

from safehorizon.core.domain.interfaces import KeyValueStore
from safehorizon.shared.exceptions import StorageError

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$")


class FileKeyValueStore(KeyValueStore):
    """Directory-backed key/value store with atomic replacement."""

    def __init__(self, directory: str, suffix: str = ".json"):
        self.directory = Path(directory)
        self.suffix = suffix

    def _path_for(self, key: str) -> Path:
        if not _SAFE_KEY.match(key) or ".." in key:
            raise StorageError(f"Invalid storage key: {key!r}", key=key)
        return self.directory / f"{key}{self.suffix}"

    async def read(self, key: str) -> Optional[bytes]:
        path = self._path_for(key)
        try:
            return await asyncio.to_thread(self._read_file, path)
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}", key=key)

    async def write(self, key: str, value: bytes) -> None:
        path = self._path_for(key)
        try:
            await asyncio.to_thread(self._write_file, path, value)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}", key=key)

    async def delete(self, key: str) -> bool:
        path = self._path_for(key)
        try:
            return await asyncio.to_thread(self._delete_file, path)
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}", key=key)

    async def keys(self) -> List[str]:
        try:
            return await asyncio.to_thread(self._list_keys)
        except OSError as e:
            raise StorageError(f"Failed to list {self.directory}: {e}")

    @staticmethod
    def _read_file(path: Path) -> Optional[bytes]:
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def _write_file(self, path: Path, value: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(self.directory), prefix=".tmp-", suffix=self.suffix)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(value)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    @staticmethod
    def _delete_file(path: Path) -> bool:
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False

    def _list_keys(self) -> List[str]:
        if not self.directory.exists():
            return []
        return sorted(
            entry.name[:-len(self.suffix)]
            for entry in self.directory.iterdir()
            if entry.is_file() and entry.name.endswith(self.suffix) and not entry.name.startswith(".tmp-")
        )


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store for memory-only deployments and tests."""

    def __init__(self):
        self._data: Dict[str, bytes] = {}

    async def read(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    async def write(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def keys(self) -> List[str]:
        return sorted(self._data)

"""
Capability interfaces consumed by the engine.

These abstract interfaces define the contracts for persistence,
serialization, reachability probing and health checking, so the engine can
run against real storage in production and in-memory fakes in tests.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional

from safehorizon.core.domain.entities import HealthStatus


class KeyValueStore(ABC):
    """Durable byte slots addressed by key."""

    @abstractmethod
    async def read(self, key: str) -> Optional[bytes]:
        """Return the stored bytes, or None when the key is absent."""
        pass

    @abstractmethod
    async def write(self, key: str, value: bytes) -> None:
        """Store bytes under key, replacing any previous value atomically."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key. Returns True if deleted, False if not found."""
        pass

    @abstractmethod
    async def keys(self) -> List[str]:
        """List stored keys."""
        pass


class Serializer(ABC):
    """Structural encoding of cacheable values."""

    @abstractmethod
    def encode(self, value: Any) -> bytes:
        """Encode value. Raises SerializationError when it cannot."""
        pass

    @abstractmethod
    def decode(self, raw: bytes) -> Any:
        """Decode bytes. Raises SerializationError on malformed input."""
        pass

    @abstractmethod
    def fingerprint(self, value: Any) -> str:
        """Content hash of the encoded value, empty if it cannot be encoded."""
        pass


class ConnectivityProbe(ABC):
    """Reachability check for the remote side."""

    @abstractmethod
    async def check(self) -> bool:
        """Return True when the network looks reachable."""
        pass


class HealthCheck(ABC):
    """A named component health check."""

    @abstractmethod
    async def check(self) -> HealthStatus:
        """Run the check and report the component's status."""
        pass

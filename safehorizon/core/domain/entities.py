"""
Domain entities for SafeHorizon.

These represent the records the engine owns: cache entries, queued offline
operations and the outcome of a sync pass.
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any, Generic
from dataclasses import dataclass, field
from uuid import uuid4

from safehorizon.shared.types import (
    T, HealthState, OperationID, OperationKind, OperationType, operation_type_value
)


@dataclass
class CacheEntry(Generic[T]):
    """A cached value with its freshness and eviction metadata."""
    data: T
    created_at: float
    ttl: Optional[float] = None
    priority: int = 1
    metadata: Dict[str, Any] = field(default_factory=dict)
    content_hash: str = ""

    def __post_init__(self):
        if self.priority < 1:
            raise ValueError("Cache priority must be at least 1")
        if self.ttl is not None and self.ttl <= 0:
            raise ValueError("Cache TTL must be positive")

    def age(self, now: float) -> float:
        """Seconds since the entry was created."""
        return now - self.created_at

    def is_expired(self, now: float) -> bool:
        """True once the entry has outlived its TTL."""
        return self.ttl is not None and self.age(now) > self.ttl

    def is_fresh(self, now: float, max_age: Optional[float] = None) -> bool:
        """Unexpired and, when ``max_age`` is given, no older than it."""
        if self.is_expired(now):
            return False
        return max_age is None or self.age(now) <= max_age

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": self.data,
            "created_at": self.created_at,
            "ttl": self.ttl,
            "priority": self.priority,
            "metadata": self.metadata,
            "content_hash": self.content_hash,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "CacheEntry":
        return cls(
            data=raw["data"],
            created_at=float(raw["created_at"]),
            ttl=float(raw["ttl"]) if raw.get("ttl") is not None else None,
            priority=int(raw.get("priority", 1)),
            metadata=dict(raw.get("metadata") or {}),
            content_hash=raw.get("content_hash", ""),
        )


@dataclass
class OfflineOperation:
    """A mutating request waiting for connectivity."""
    id: OperationID
    type: OperationKind
    payload: Dict[str, Any]
    enqueued_at: datetime
    priority: int = 1
    max_retries: int = 3
    retry_count: int = 0

    def __post_init__(self):
        if not str(self.id).strip():
            raise ValueError("Operation id cannot be empty")
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.retry_count < 0:
            raise ValueError("retry_count cannot be negative")

    @property
    def type_name(self) -> str:
        return operation_type_value(self.type)

    @property
    def is_exhausted(self) -> bool:
        """True once the operation has used up its retries."""
        return self.retry_count >= self.max_retries

    def record_failure(self) -> None:
        self.retry_count += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type_name,
            "payload": self.payload,
            "enqueued_at": self.enqueued_at.isoformat(),
            "priority": self.priority,
            "max_retries": self.max_retries,
            "retry_count": self.retry_count,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "OfflineOperation":
        raw_type = raw["type"]
        try:
            op_type: OperationKind = OperationType(raw_type)
        except ValueError:
            op_type = raw_type

        return cls(
            id=OperationID(raw["id"]),
            type=op_type,
            payload=dict(raw["payload"]),
            enqueued_at=datetime.fromisoformat(raw["enqueued_at"]),
            priority=int(raw.get("priority", 1)),
            max_retries=int(raw.get("max_retries", 3)),
            retry_count=int(raw.get("retry_count", 0)),
        )


@dataclass
class SyncResult:
    """Outcome of one pass over the offline queue."""
    succeeded: int = 0
    failed: int = 0
    dead: int = 0
    duration_ms: float = 0.0
    skipped: bool = False

    @property
    def attempted(self) -> int:
        return self.succeeded + self.failed


@dataclass
class HealthStatus:
    """Result of a component health check."""
    state: HealthState
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_healthy(self) -> bool:
        return self.state == HealthState.HEALTHY

    @classmethod
    def healthy(cls, message: str = "Service is healthy", details: Optional[Dict[str, Any]] = None) -> "HealthStatus":
        return cls(HealthState.HEALTHY, message, details or {})

    @classmethod
    def degraded(cls, message: str, details: Optional[Dict[str, Any]] = None) -> "HealthStatus":
        return cls(HealthState.DEGRADED, message, details or {})

    @classmethod
    def unhealthy(cls, message: str, details: Optional[Dict[str, Any]] = None) -> "HealthStatus":
        return cls(HealthState.UNHEALTHY, message, details or {})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "is_healthy": self.is_healthy,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


def create_offline_operation(
    type: OperationKind,
    payload: Dict[str, Any],
    priority: int = 1,
    max_retries: int = 3,
    id: Optional[str] = None,
    enqueued_at: Optional[datetime] = None
) -> OfflineOperation:
    """Factory function for creating a queued operation with a fresh id."""
    return OfflineOperation(
        id=OperationID(id or uuid4().hex),
        type=type,
        payload=dict(payload),
        enqueued_at=enqueued_at or datetime.now(timezone.utc),
        priority=priority,
        max_retries=max_retries,
    )

"""
Type definitions for SafeHorizon.

This module contains the custom type definitions used throughout
the engine to keep interfaces explicit.
"""

from typing import Any, Awaitable, Callable, Dict, NewType, TypeVar, Union
from enum import Enum

T = TypeVar('T')

# Identifier types
OperationID = NewType('OperationID', str)

# Capability signatures
Payload = Dict[str, Any]
Executor = Callable[[Payload], Awaitable[bool]]


class OperationType(str, Enum):
    """Built-in kinds of offline operations. Callers may use any other string."""
    LOCATION_UPDATE = "location_update"
    ALERT_CREATE = "alert_create"
    DATA_UPDATE = "data_update"


OperationKind = Union[OperationType, str]


def operation_type_value(operation_type: OperationKind) -> str:
    """Normalize an operation type to the string used for storage and lookup."""
    if isinstance(operation_type, OperationType):
        return operation_type.value
    return str(operation_type)


class CircuitBreakerState(str, Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class HealthState(str, Enum):
    """Health status enumeration."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"

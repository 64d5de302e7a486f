"""
Custom exceptions for the SafeHorizon resilience engine.

This module defines all custom exceptions used throughout the engine,
providing a clear error hierarchy and the retryability rules shared by
the retry policy, the circuit breaker and the offline queue.
"""

import builtins
from typing import Optional, Dict, Any, Tuple, Type


TRANSIENT_ERROR_MARKERS = ("timeout", "connection", "network", "socket", "unreachable")


class SafeHorizonError(Exception):
    """Base exception for all SafeHorizon errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.error_code = error_code


class ConfigurationError(SafeHorizonError):
    """Raised when there are configuration or setup issues."""
    pass


class ContractViolationError(SafeHorizonError):
    """Base class for contract programming violations."""
    pass


class PreconditionError(ContractViolationError):
    """Raised when a function precondition is violated."""
    pass


class NetworkError(SafeHorizonError):
    """Raised when communication with a remote dependency fails."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        is_retryable: bool = True,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.is_retryable = is_retryable


class TransientNetworkError(NetworkError):
    """Raised for network failures that are expected to clear up on their own."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", "TRANSIENT_NETWORK_ERROR")
        super().__init__(message, is_retryable=True, **kwargs)


class CircuitOpenError(NetworkError):
    """Raised when a circuit breaker rejects a call without attempting it."""

    def __init__(self, name: str, failure_count: int, **kwargs):
        super().__init__(
            f"Circuit breaker is open for {name}",
            status_code=503,
            is_retryable=False,
            error_code="CIRCUIT_BREAKER_OPEN",
            details={"circuit_breaker": name, "failure_count": failure_count},
            **kwargs
        )
        self.name = name
        self.failure_count = failure_count


class TimeoutError(NetworkError):
    """Raised when an operation does not finish within its time budget."""

    def __init__(self, operation: Optional[str], timeout_seconds: float, **kwargs):
        super().__init__(
            f"Operation timed out: {operation or 'operation'} after {timeout_seconds}s",
            is_retryable=True,
            error_code="OPERATION_TIMEOUT",
            details={"operation": operation, "timeout_seconds": timeout_seconds},
            **kwargs
        )
        self.operation = operation
        self.timeout_seconds = timeout_seconds


class SerializationError(SafeHorizonError):
    """Raised when a value cannot be encoded for (or decoded from) disk."""
    pass


class StorageError(SafeHorizonError):
    """Raised when the persistent byte store cannot be read or written."""

    def __init__(self, message: str, key: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.key = key


class MaxRetriesExceededError(SafeHorizonError):
    """Raised when a retry policy runs out of attempts and wrapping is requested."""

    def __init__(self, operation_name: str, attempts: int, last_error: BaseException, **kwargs):
        super().__init__(
            f"Operation {operation_name} failed after {attempts} attempts: {last_error}",
            error_code="MAX_RETRIES_EXCEEDED",
            **kwargs
        )
        self.operation_name = operation_name
        self.attempts = attempts
        self.last_error = last_error


class QueueOperationDeadError(SafeHorizonError):
    """An offline operation exhausted its retries and was dropped from the queue."""

    def __init__(self, operation_id: str, operation_type: str, retry_count: int, **kwargs):
        super().__init__(
            f"Offline operation {operation_id} ({operation_type}) dropped after {retry_count} failed attempts",
            error_code="QUEUE_OPERATION_DEAD",
            **kwargs
        )
        self.operation_id = operation_id
        self.operation_type = operation_type
        self.retry_count = retry_count


class ExecutorNotRegisteredError(SafeHorizonError):
    """Raised when no executor is registered for an operation type."""

    def __init__(self, operation_type: str, **kwargs):
        super().__init__(f"No executor registered for operation type: {operation_type}", **kwargs)
        self.operation_type = operation_type


class PayloadValidationError(SafeHorizonError):
    """Raised when an operation payload does not match its type's schema."""

    def __init__(self, operation_type: str, errors: Any = None, **kwargs):
        super().__init__(f"Invalid payload for operation type: {operation_type}", **kwargs)
        self.operation_type = operation_type
        self.errors = errors


def is_transient_error(exception: BaseException) -> bool:
    """Heuristic for errors whose text says the network is to blame."""
    text = f"{type(exception).__name__}: {exception}".lower()
    return any(marker in text for marker in TRANSIENT_ERROR_MARKERS)


def is_retryable_error(
    exception: BaseException,
    retryable_exceptions: Tuple[Type[BaseException], ...] = ()
) -> bool:
    """Determine if an error is retryable."""
    # Errors that know their own retryability win over everything else
    if isinstance(exception, NetworkError):
        return exception.is_retryable

    non_retryable_exceptions = (
        ConfigurationError,
        ContractViolationError,
        SerializationError,
        PayloadValidationError,
        ExecutorNotRegisteredError,
    )

    if isinstance(exception, non_retryable_exceptions):
        return False

    if retryable_exceptions and isinstance(exception, retryable_exceptions):
        return True

    if isinstance(exception, (builtins.TimeoutError, ConnectionError)):
        return True

    return is_transient_error(exception)

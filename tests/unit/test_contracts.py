"""
Unit tests for contract decorators and the exception hierarchy.
"""
import pytest

from safehorizon.shared.contracts import non_empty_string, optional_positive, require
from safehorizon.shared.exceptions import (
    CircuitOpenError,
    NetworkError,
    PreconditionError,
    QueueOperationDeadError,
    SafeHorizonError,
    TimeoutError as OperationTimeoutError
)


@require(lambda amount, **_: amount > 0, "amount must be positive")
def reserve(amount: int, label: str = "default") -> int:
    return amount


@require(lambda name, **_: non_empty_string(name), "name required")
@require(lambda ttl, **_: optional_positive(ttl))
async def store(name: str, ttl=None) -> str:
    return name


class TestRequire:
    """Test cases for the @require decorator."""

    def test_sync_function(self):
        assert reserve(3) == 3
        with pytest.raises(PreconditionError, match="amount must be positive"):
            reserve(0)

    @pytest.mark.asyncio
    async def test_async_function_with_stacked_contracts(self):
        assert await store("zones") == "zones"
        with pytest.raises(PreconditionError, match="name required"):
            await store(" ")
        with pytest.raises(PreconditionError, match="Precondition failed in store"):
            await store("zones", ttl=-1)

    def test_condition_error_becomes_precondition_error(self):
        @require(lambda value, **_: value > 0)
        def check(value):
            return value

        with pytest.raises(PreconditionError, match="evaluation error"):
            check("text")


class TestExceptionHierarchy:
    """Test cases for the engine's exceptions."""

    def test_circuit_open_is_network_error(self):
        error = CircuitOpenError("alerts", 5)

        assert isinstance(error, NetworkError)
        assert isinstance(error, SafeHorizonError)
        assert error.details == {"circuit_breaker": "alerts", "failure_count": 5}

    def test_timeout_error(self):
        error = OperationTimeoutError("fetch_zones", 2.5)

        assert error.is_retryable
        assert error.error_code == "OPERATION_TIMEOUT"
        assert "fetch_zones" in error.message

    def test_dead_operation_error(self):
        error = QueueOperationDeadError("op-1", "alert_create", 3)

        assert error.error_code == "QUEUE_OPERATION_DEAD"
        assert error.retry_count == 3

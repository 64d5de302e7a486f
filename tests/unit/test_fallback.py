"""
Unit tests for FallbackHandler.
"""
import pytest

from safehorizon.infrastructure.resilience import FallbackHandler
from safehorizon.shared.exceptions import TransientNetworkError


async def _primary_ok():
    return "primary"


async def _primary_fails():
    raise TransientNetworkError("network unreachable")


class TestFallbackHandler:
    """Test cases for FallbackHandler."""

    def test_requires_some_fallback(self):
        with pytest.raises(ValueError, match="fallback"):
            FallbackHandler("zones")

    def test_none_is_a_valid_fallback_value(self):
        assert FallbackHandler("zones", fallback_value=None).has_fallback_value

    @pytest.mark.asyncio
    async def test_primary_result_returned(self):
        calls = []

        async def fallback():
            calls.append(1)
            return "fallback"

        handler = FallbackHandler("zones", fallback_operation=fallback)

        assert await handler.execute(_primary_ok) == "primary"
        assert calls == []

    @pytest.mark.asyncio
    async def test_fallback_operation_used(self):
        async def fallback():
            return "fallback"

        handler = FallbackHandler("zones", fallback_operation=fallback, fallback_value="static")

        assert await handler.execute(_primary_fails) == "fallback"

    @pytest.mark.asyncio
    async def test_static_value_after_fallback_operation_fails(self):
        async def fallback():
            raise RuntimeError("cache unavailable")

        handler = FallbackHandler("zones", fallback_operation=fallback, fallback_value=[])

        assert await handler.execute(_primary_fails) == []

    @pytest.mark.asyncio
    async def test_static_value_only(self):
        handler = FallbackHandler("zones", fallback_value={"zones": []})

        assert await handler.execute(_primary_fails) == {"zones": []}

    @pytest.mark.asyncio
    async def test_primary_error_raised_when_everything_fails(self):
        primary_error = TransientNetworkError("network unreachable")

        async def primary():
            raise primary_error

        async def fallback():
            raise RuntimeError("cache unavailable")

        handler = FallbackHandler("zones", fallback_operation=fallback)

        with pytest.raises(TransientNetworkError) as exc_info:
            await handler.execute(primary)

        assert exc_info.value is primary_error

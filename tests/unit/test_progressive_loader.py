"""
Unit tests for ProgressiveLoader.
"""
import pytest

from safehorizon.infrastructure.cache import ProgressiveLoader
from safehorizon.shared.exceptions import TransientNetworkError


class Source:
    """Data loader returning successive versions of a resource."""

    def __init__(self, fail: bool = False):
        self.calls = 0
        self.fail = fail

    async def __call__(self):
        self.calls += 1
        if self.fail:
            raise TransientNetworkError("network unreachable")
        return {"version": self.calls}


class TestProgressiveLoader:
    """Test cases for ProgressiveLoader."""

    @pytest.mark.asyncio
    async def test_loads_and_caches_on_miss(self, memory_cache):
        source = Source()
        fresh = []
        loader = ProgressiveLoader(memory_cache, "zones", source)

        result = await loader.load(on_fresh_data=fresh.append)

        assert result == {"version": 1}
        assert fresh == [{"version": 1}]
        assert await memory_cache.get("zones") == {"version": 1}

    @pytest.mark.asyncio
    async def test_cache_hit_served_then_refreshed(self, memory_cache):
        await memory_cache.set("zones", {"version": 0})
        source = Source()
        cached, fresh = [], []
        loader = ProgressiveLoader(memory_cache, "zones", source)

        result = await loader.load(on_cache_data=cached.append, on_fresh_data=fresh.append)
        assert result == {"version": 0}
        assert cached == [{"version": 0}]

        await loader.wait_for_refresh()
        assert fresh == [{"version": 1}]
        assert await memory_cache.get("zones") == {"version": 1}

    @pytest.mark.asyncio
    async def test_no_refresh_without_progressive_loading(self, memory_cache):
        await memory_cache.set("zones", {"version": 0})
        source = Source()
        loader = ProgressiveLoader(memory_cache, "zones", source, use_progressive_loading=False)

        assert await loader.load() == {"version": 0}
        await loader.wait_for_refresh()
        assert source.calls == 0

    @pytest.mark.asyncio
    async def test_force_refresh_skips_cache(self, memory_cache):
        await memory_cache.set("zones", {"version": 0})
        loader = ProgressiveLoader(memory_cache, "zones", Source())

        assert await loader.load(force_refresh=True) == {"version": 1}

    @pytest.mark.asyncio
    async def test_stale_cache_served_when_load_fails(self, memory_cache, manual_clock):
        await memory_cache.set("zones", {"version": 0})
        manual_clock.advance(120)
        loader = ProgressiveLoader(memory_cache, "zones", Source(fail=True), cache_validity_seconds=60)

        assert await loader.load() == {"version": 0}

    @pytest.mark.asyncio
    async def test_failure_without_cache_raises(self, memory_cache):
        loader = ProgressiveLoader(memory_cache, "zones", Source(fail=True))

        with pytest.raises(TransientNetworkError):
            await loader.load()

    @pytest.mark.asyncio
    async def test_background_refresh_failure_keeps_cached_data(self, memory_cache):
        await memory_cache.set("zones", {"version": 0})
        fresh = []
        loader = ProgressiveLoader(memory_cache, "zones", Source(fail=True))

        assert await loader.load(on_fresh_data=fresh.append) == {"version": 0}
        await loader.wait_for_refresh()

        assert fresh == []
        assert await memory_cache.get("zones") == {"version": 0}

    @pytest.mark.asyncio
    async def test_fresh_data_uses_validity_as_ttl(self, memory_cache):
        loader = ProgressiveLoader(memory_cache, "zones", Source(), cache_validity_seconds=60)

        await loader.load()

        entry = await memory_cache.get_entry("zones")
        assert entry.ttl == 60

"""
Progressive (stale-while-revalidate) data loading on top of the cache.
"""

import asyncio
from typing import Awaitable, Callable, Generic, Optional, Set

import structlog

from safehorizon.infrastructure.cache.store import CacheStore
from safehorizon.shared.types import T

logger = structlog.get_logger(__name__)


class ProgressiveLoader(Generic[T]):
    """Serve cached data at once and refresh it in the background."""

    def __init__(
        self,
        cache: CacheStore,
        cache_key: str,
        data_loader: Callable[[], Awaitable[T]],
        cache_validity_seconds: Optional[float] = None,
        use_progressive_loading: bool = True
    ):
        """
        Args:
            cache: Cache store holding the data
            cache_key: Key the data is cached under
            data_loader: Fetches fresh data from the source
            cache_validity_seconds: Max age of usable cached data, also the TTL
                of freshly loaded data
            use_progressive_loading: Refresh in the background after a cache hit
        """
        self.cache = cache
        self.cache_key = cache_key
        self.data_loader = data_loader
        self.cache_validity_seconds = cache_validity_seconds
        self.use_progressive_loading = use_progressive_loading
        self._refreshes: Set[asyncio.Task] = set()

    async def load(
        self,
        force_refresh: bool = False,
        on_cache_data: Optional[Callable[[T], None]] = None,
        on_fresh_data: Optional[Callable[[T], None]] = None
    ) -> Optional[T]:
        """
        Load data, cache first.

        Args:
            force_refresh: Skip the cache lookup and load fresh data
            on_cache_data: Called with cached data when served from cache
            on_fresh_data: Called with freshly loaded data, possibly later
                from the background refresh

        Returns:
            Cached data, fresh data, or stale cached data if the fresh load
            failed

        Raises:
            The loader's exception when it fails and nothing is cached
        """
        if not force_refresh:
            cached = await self.cache.get(self.cache_key, max_age=self.cache_validity_seconds)
            if cached is not None:
                if on_cache_data is not None:
                    on_cache_data(cached)

                if self.use_progressive_loading:
                    self._refresh_in_background(on_fresh_data)
                return cached

        try:
            fresh = await self._load_and_store()
        except Exception as e:
            logger.error("Progressive data loading failed", cache_key=self.cache_key, error=str(e))
            stale = await self.cache.get(self.cache_key)
            if stale is None:
                raise
            logger.info("Serving stale cached data", cache_key=self.cache_key)
            return stale

        if on_fresh_data is not None:
            on_fresh_data(fresh)
        return fresh

    async def wait_for_refresh(self) -> None:
        """Wait until outstanding background refreshes have finished."""
        if self._refreshes:
            await asyncio.gather(*list(self._refreshes), return_exceptions=True)

    async def _load_and_store(self) -> T:
        fresh = await self.data_loader()
        await self.cache.set(self.cache_key, fresh, ttl=self.cache_validity_seconds)
        return fresh

    def _refresh_in_background(self, on_fresh_data: Optional[Callable[[T], None]]) -> None:
        task = asyncio.create_task(self._background_refresh(on_fresh_data))
        self._refreshes.add(task)
        task.add_done_callback(self._refreshes.discard)

    async def _background_refresh(self, on_fresh_data: Optional[Callable[[T], None]]) -> None:
        try:
            fresh = await self._load_and_store()
        except Exception as e:
            logger.debug("Background data refresh failed", cache_key=self.cache_key, error=str(e))
            return

        if on_fresh_data is not None:
            on_fresh_data(fresh)

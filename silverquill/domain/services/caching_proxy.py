"""Caching proxy that mediates every outgoing request through the asset cache."""

import asyncio
import logging
from enum import Enum
from typing import Iterable, Optional
from urllib.parse import urlsplit

import httpx

from ..entities.cache import CachedResponse, CacheRequest, is_cacheable, origin_of
from ..interfaces.asset_cache import AssetCache

logger = logging.getLogger(__name__)


class ProxyState(str, Enum):
    """Lifecycle of the proxy, driven by its host."""

    NEW = "new"
    INSTALLED = "installed"
    ACTIVE = "active"


class CachingProxy:
    """
    Decides, per request, whether to answer from cache, the network, or both.

    Policy, in priority order:

    1. Bypass: requests to the remote store's origin go straight to the
       network and are never looked up or stored.
    2. Cache-first: a hit in the current generation is returned without any
       network access, freshness check or revalidation.
    3. Network fallback: on a miss the request goes to the network; a
       same-origin 200 response is copied and stored by a detached task while
       the original is returned to the caller.

    Network failures on a miss propagate unmodified. Until ``activate`` runs
    every request is passed through untouched.
    """

    def __init__(
        self,
        cache: AssetCache,
        network: httpx.AsyncBaseTransport,
        app_origin: str,
        version: str,
        bypass_origins: Iterable[str] = (),
        bypass_host_suffixes: Iterable[str] = (),
    ):
        self.cache = cache
        self.network = network
        self.app_origin = origin_of(app_origin)
        self.version = version
        self.bypass_origins = {origin_of(o) for o in bypass_origins}
        self.bypass_host_suffixes = tuple(s.lower() for s in bypass_host_suffixes)
        self.state = ProxyState.NEW
        self._pending: set[asyncio.Task] = set()

    # ===== Lifecycle signals =====

    async def install(self) -> None:
        """Prepare the generation this build serves."""
        await self.cache.open_generation(self.version)
        self.state = ProxyState.INSTALLED
        logger.info(f"Caching proxy installed for generation {self.version}")

    async def activate(self) -> list[str]:
        """Evict every stale generation and start handling traffic.

        Returns:
            list[str]: The generation tags that were deleted.
        """
        if self.state == ProxyState.NEW:
            await self.install()
        evicted = await self.cache.evict_generations_except(self.version)
        self.state = ProxyState.ACTIVE
        if evicted:
            logger.info(f"Evicted stale cache generations: {', '.join(evicted)}")
        return evicted

    # ===== Fetch =====

    def bypasses(self, request: httpx.Request) -> bool:
        """True when the request targets the remote store and must stay live."""
        if origin_of(str(request.url)) in self.bypass_origins:
            return True
        host = (urlsplit(str(request.url)).hostname or "").lower()
        return any(host == s.lstrip(".") or host.endswith("." + s.lstrip(".")) for s in self.bypass_host_suffixes)

    async def fetch(self, request: httpx.Request) -> httpx.Response:
        """Produce a response for ``request`` according to the cache policy."""
        if self.state != ProxyState.ACTIVE or self.bypasses(request):
            return await self.network.handle_async_request(request)

        cache_request = CacheRequest.from_httpx(request)
        if request.method == "GET":
            cached = await self.cache.lookup(cache_request)
            if cached is not None:
                logger.debug(f"Cache hit: {cache_request.key}")
                return cached.to_httpx(request)
            logger.debug(f"Cache miss: {cache_request.key}")

        response = await self.network.handle_async_request(request)
        if request.method != "GET" or response.status_code != 200:
            return response

        await response.aread()
        copy = CachedResponse.from_httpx(response, url=str(request.url))
        if is_cacheable(cache_request, copy, self.app_origin):
            self._spawn_store(cache_request, copy)
        return response

    # ===== Detached cache population =====

    def _spawn_store(self, request: CacheRequest, response: CachedResponse) -> None:
        task = asyncio.create_task(self.cache.store(request, response))
        self._pending.add(task)
        task.add_done_callback(self._store_done)

    def _store_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error: Optional[BaseException] = task.exception()
        if error is not None:
            # The caller already has its response; a failed store only costs a future miss.
            logger.warning(f"Cache population failed: {error}")

    @property
    def pending_stores(self) -> int:
        return len(self._pending)

    async def wait_for_pending(self) -> None:
        """Wait for in-flight cache writes. For shutdown; never on the response path."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

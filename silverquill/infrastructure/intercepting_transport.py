"""httpx transport that sends every request through the caching proxy."""

import httpx

from ..domain.services.caching_proxy import CachingProxy


class InterceptingTransport(httpx.AsyncBaseTransport):
    """Sits between an ``httpx.AsyncClient`` and the network.

    Usage:
        proxy = CachingProxy(cache, httpx.AsyncHTTPTransport(), app_origin, version)
        client = httpx.AsyncClient(transport=InterceptingTransport(proxy))
    """

    def __init__(self, proxy: CachingProxy):
        self.proxy = proxy

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self.proxy.fetch(request)

    async def aclose(self) -> None:
        await self.proxy.wait_for_pending()
        await self.proxy.network.aclose()

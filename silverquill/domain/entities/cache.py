"""Asset cache entities."""

from typing import Optional
from urllib.parse import urlsplit

import httpx
from pydantic import BaseModel, ConfigDict, Field


def origin_of(url: str) -> str:
    """Return ``scheme://host[:port]`` for a URL."""
    parts = urlsplit(str(url))
    return f"{parts.scheme}://{parts.netloc}".lower()


class CacheRequest(BaseModel):
    """Identity of a request as far as the asset cache is concerned."""

    model_config = ConfigDict(frozen=True)

    method: str = "GET"
    url: str

    @property
    def key(self) -> str:
        return f"{self.method.upper()} {self.url}"

    @property
    def origin(self) -> str:
        return origin_of(self.url)

    @classmethod
    def from_httpx(cls, request: httpx.Request) -> "CacheRequest":
        return cls(method=request.method, url=str(request.url))


class CachedResponse(BaseModel):
    """A detached copy of a response: status, headers and the full body."""

    model_config = ConfigDict(frozen=True)

    status_code: int
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes = b""
    url: Optional[str] = None
    redirected: bool = False

    @classmethod
    def from_httpx(cls, response: httpx.Response, url: Optional[str] = None) -> "CachedResponse":
        """Copy an httpx response whose body has already been read.

        Args:
            response: The live response.
            url: Final URL the response came from, when the response carries
                no request of its own (as at the transport level).
        """
        return cls(
            status_code=response.status_code,
            headers=dict(response.headers.items()),
            body=response.content,
            url=url,
            redirected=bool(response.history),
        )

    def to_httpx(self, request: httpx.Request) -> httpx.Response:
        """Rebuild an httpx response to hand back to a caller."""
        # The body is stored decoded, so framing headers no longer apply.
        headers = {
            k: v
            for k, v in self.headers.items()
            if k.lower() not in ("content-encoding", "transfer-encoding", "content-length")
        }
        return httpx.Response(
            status_code=self.status_code,
            headers=headers,
            content=self.body,
            request=request,
        )


class CacheEntry(BaseModel):
    """One stored response belonging to exactly one cache generation."""

    model_config = ConfigDict(frozen=True)

    key: str
    response: CachedResponse
    generation: str


def is_cacheable(request: CacheRequest, response: CachedResponse, app_origin: str) -> bool:
    """Decide whether a network response may be written to the asset cache.

    Only same-origin, non-redirected GET responses with status 200 qualify.
    Cross-origin, redirected and error responses are never cached.
    """
    if request.method.upper() != "GET":
        return False
    if response.status_code != 200 or response.redirected:
        return False
    response_url = response.url or request.url
    return origin_of(response_url) == origin_of(app_origin)

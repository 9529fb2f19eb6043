"""AssetCache protocol."""

from typing import Optional, Protocol, runtime_checkable

from ..entities.cache import CachedResponse, CacheRequest


@runtime_checkable
class AssetCache(Protocol):
    """Protocol for the versioned, key-addressed response store.

    Entries live in named generations. Only the current generation is ever
    read or written; every other generation is stale and reclaimed on
    activation. There is no per-entry expiry.
    """

    @property
    def generation(self) -> str:
        """Tag of the current generation."""
        ...

    async def open_generation(self, generation: str) -> None:
        """Make sure ``generation`` exists (idempotent)."""
        ...

    async def generations(self) -> list[str]:
        """List every generation tag currently held."""
        ...

    async def lookup(self, request: CacheRequest) -> Optional[CachedResponse]:
        """Return the stored response for ``request`` in the current generation."""
        ...

    async def store(self, request: CacheRequest, response: CachedResponse) -> None:
        """Store ``response`` under ``request`` in the current generation.

        Last write wins for concurrent stores of the same key.

        Raises:
            CacheStoreError: If the write fails.
        """
        ...

    async def evict_generations_except(self, current: str) -> list[str]:
        """Delete every generation whose tag differs from ``current``.

        Returns:
            list[str]: The tags that were deleted.
        """
        ...

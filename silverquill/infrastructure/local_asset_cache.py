"""Local in-memory implementation of AssetCache."""

from typing import Dict, Optional

from ..domain.entities.cache import CachedResponse, CacheEntry, CacheRequest
from ..domain.interfaces.asset_cache import AssetCache


class LocalAssetCache(AssetCache):
    """Local in-memory implementation of the AssetCache protocol.

    Stores generations as nested dictionaries for testing and development
    purposes.
    """

    def __init__(self, generation: str, generations: Optional[Dict[str, Dict[str, CacheEntry]]] = None):
        """Initialize the cache for the given current generation.

        Args:
            generation: Tag of the current generation.
            generations: Storage shared with caches of other versions, the way
                successive builds share one browser cache storage.
        """
        self._generation = generation
        self._generations: Dict[str, Dict[str, CacheEntry]] = generations if generations is not None else {}

    @property
    def generation(self) -> str:
        return self._generation

    async def open_generation(self, generation: str) -> None:
        self._generations.setdefault(generation, {})

    async def generations(self) -> list[str]:
        return list(self._generations)

    async def lookup(self, request: CacheRequest) -> Optional[CachedResponse]:
        entry = self._generations.get(self._generation, {}).get(request.key)
        return entry.response if entry else None

    async def store(self, request: CacheRequest, response: CachedResponse) -> None:
        entries = self._generations.setdefault(self._generation, {})
        entries[request.key] = CacheEntry(
            key=request.key, response=response, generation=self._generation
        )

    async def evict_generations_except(self, current: str) -> list[str]:
        stale = [tag for tag in self._generations if tag != current]
        for tag in stale:
            del self._generations[tag]
        return stale

    def entries(self, generation: Optional[str] = None) -> Dict[str, CacheEntry]:
        """Copy of the entries held by a generation (the current one by default)."""
        return dict(self._generations.get(generation or self._generation, {}))

    def clear(self) -> None:
        self._generations.clear()

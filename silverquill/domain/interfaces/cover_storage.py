"""Cover image storage protocol."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class CoverStorage(Protocol):
    """Object-store style put for cover images."""

    async def upload(self, owner_id: str, filename: str, content: bytes, content_type: str) -> str:
        """Store a cover image and return its publicly resolvable address.

        The returned address is stored verbatim as ``Book.cover_url``.

        Raises:
            CoverUploadError: If the put fails.
        """
        ...

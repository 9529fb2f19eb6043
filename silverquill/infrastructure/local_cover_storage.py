"""Local in-memory implementation of CoverStorage."""

from typing import Dict

from ..domain.interfaces.cover_storage import CoverStorage


class LocalCoverStorage(CoverStorage):
    """Keeps uploaded covers in a dictionary for testing and development purposes."""

    def __init__(self, base_url: str = "memory://covers"):
        self.base_url = base_url.rstrip("/")
        self._objects: Dict[str, bytes] = {}

    async def upload(self, owner_id: str, filename: str, content: bytes, content_type: str) -> str:
        path = f"{owner_id}/{filename}"
        self._objects[path] = content
        return f"{self.base_url}/{path}"

    def get_all_objects(self) -> Dict[str, bytes]:
        return self._objects.copy()

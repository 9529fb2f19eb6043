"""Client-local durable key-value store."""

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class PreferenceStore(Protocol):
    """Protocol for small preferences that survive restarts."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

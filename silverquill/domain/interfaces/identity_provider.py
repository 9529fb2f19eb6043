"""Identity provider protocol."""

from typing import Optional, Protocol, runtime_checkable

from ..entities.identity import Identity


@runtime_checkable
class IdentityProvider(Protocol):
    """Source of the active identity, managed by an external auth collaborator."""

    async def current(self) -> Optional[Identity]:
        """Return the active identity, or None when nobody is signed in."""
        ...

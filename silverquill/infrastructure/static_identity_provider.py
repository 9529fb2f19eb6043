"""Local implementation of IdentityProvider."""

from typing import Optional

from ..domain.entities.identity import Identity
from ..domain.interfaces.identity_provider import IdentityProvider


class StaticIdentityProvider(IdentityProvider):
    """Holds an identity handed to it, for testing and development purposes."""

    def __init__(self, identity: Optional[Identity] = None):
        self._identity = identity

    async def current(self) -> Optional[Identity]:
        return self._identity

    def sign_in(self, identity: Identity) -> None:
        self._identity = identity

    def sign_out(self) -> None:
        self._identity = None

"""Supabase Auth implementation of IdentityProvider."""

import logging
from contextvars import ContextVar, Token
from typing import Optional

import httpx

from ..domain.entities.identity import Identity
from ..domain.errors import RemoteStoreError
from ..domain.interfaces.identity_provider import IdentityProvider

logger = logging.getLogger(__name__)


class SupabaseIdentityProvider(IdentityProvider):
    """Resolves the user behind an access token issued by Supabase Auth.

    The token is set by whoever manages sign-in; this provider only asks the
    auth service who it belongs to and remembers the answer per token. It
    never refreshes the token.

    The token lives in a context variable, so concurrent requests each see
    the token they were authenticated with. ``access_token`` passed to the
    constructor is used wherever no token was set.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        access_token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_cached_identities: int = 256,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._default_token = access_token
        self._token: ContextVar[Optional[str]] = ContextVar(f"supabase_access_token_{id(self)}")
        self._resolved: dict[str, Identity] = {}
        self._max_cached = max_cached_identities
        self._client = httpx.AsyncClient(
            base_url=f"{self.base_url}/auth/v1/",
            timeout=timeout,
            transport=transport,
        )

    @property
    def access_token(self) -> Optional[str]:
        """Token of the current context."""
        return self._token.get(self._default_token)

    def set_token(self, access_token: Optional[str]) -> Token:
        """Set the token for the current context (and the tasks it spawns).

        Returns the context token to hand back to ``reset_token``.
        """
        return self._token.set(access_token)

    def reset_token(self, token: Token) -> None:
        self._token.reset(token)

    async def current(self) -> Optional[Identity]:
        """Return the identity for the current token, or None if signed out.

        Raises:
            RemoteStoreError: If the auth service cannot be reached.
        """
        access_token = self.access_token
        if not access_token:
            return None
        if access_token in self._resolved:
            return self._resolved[access_token]

        try:
            response = await self._client.get(
                "/user",
                headers={
                    "apikey": self.api_key,
                    "Authorization": f"Bearer {access_token}",
                },
            )
        except httpx.HTTPError as e:
            raise RemoteStoreError(f"Auth lookup failed: {e}", operation="get_user") from e

        if response.status_code in (401, 403):
            logger.info("Access token rejected by auth service")
            return None
        if response.status_code >= 400:
            raise RemoteStoreError(
                "Auth lookup rejected", operation="get_user", status_code=response.status_code
            )

        user_id = response.json().get("id")
        if not user_id:
            return None
        identity = Identity(user_id=user_id, access_token=access_token)
        if len(self._resolved) >= self._max_cached:
            # Oldest first: dicts keep insertion order.
            self._resolved.pop(next(iter(self._resolved)))
        self._resolved[access_token] = identity
        return identity

    async def aclose(self) -> None:
        await self._client.aclose()

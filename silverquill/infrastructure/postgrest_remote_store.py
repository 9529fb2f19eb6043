"""PostgREST (Supabase) implementation of the RemoteStore."""

import logging
from typing import Any, Mapping, Optional, Sequence

import httpx

from ..domain.errors import RemoteStoreError
from ..domain.interfaces.remote_store import RemoteStore

logger = logging.getLogger(__name__)


def _eq(value: Any) -> str:
    """Render an equality filter in PostgREST syntax."""
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    return f"eq.{value}"


class PostgrestRemoteStore(RemoteStore):
    """RemoteStore backed by the Supabase REST API.

    Every call sends the project's anon key and the caller's access token.
    Row-level security on the server scopes rows to the token's owner.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the store.

        Args:
            base_url: Project URL, e.g. ``https://abc.supabase.co``.
            api_key: Project anon key.
            timeout: Per-request timeout in seconds.
            transport: Optional transport (the caching proxy's, or a mock).
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._client = httpx.AsyncClient(
            base_url=f"{self.base_url}/rest/v1/",
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def select(
        self,
        table: str,
        token: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        ascending: bool = True,
    ) -> list[dict]:
        params = {"select": "*"}
        params.update({column: _eq(value) for column, value in (filters or {}).items()})
        if order_by:
            params["order"] = f"{order_by}.{'asc' if ascending else 'desc'}"
        response = await self._request("GET", table, "select", token, params=params)
        return response.json()

    async def insert(self, table: str, rows: Sequence[Mapping[str, Any]], token: str) -> list[dict]:
        response = await self._request(
            "POST", table, "insert", token, json=[dict(row) for row in rows], prefer="return=representation"
        )
        return response.json()

    async def update(
        self,
        table: str,
        values: Mapping[str, Any],
        filters: Mapping[str, Any],
        token: str,
    ) -> list[dict]:
        self._require_filters(table, "update", filters)
        response = await self._request(
            "PATCH",
            table,
            "update",
            token,
            params={column: _eq(value) for column, value in filters.items()},
            json=dict(values),
            prefer="return=representation",
        )
        return response.json()

    async def delete(self, table: str, filters: Mapping[str, Any], token: str) -> None:
        self._require_filters(table, "delete", filters)
        await self._request(
            "DELETE",
            table,
            "delete",
            token,
            params={column: _eq(value) for column, value in filters.items()},
        )

    @staticmethod
    def _require_filters(table: str, operation: str, filters: Mapping[str, Any]) -> None:
        if not filters:
            raise RemoteStoreError(
                f"Refusing unfiltered {operation} on {table}", table=table, operation=operation
            )

    async def _request(
        self,
        method: str,
        table: str,
        operation: str,
        token: str,
        params: Optional[dict] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> httpx.Response:
        if not token:
            raise RemoteStoreError(
                "Missing identity token", table=table, operation=operation, status_code=401
            )
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {token}",
        }
        if prefer:
            headers["Prefer"] = prefer

        try:
            response = await self._client.request(
                method, f"/{table}", params=params, json=json, headers=headers
            )
        except httpx.HTTPError as e:
            logger.warning(f"{operation} on {table} did not complete: {e}")
            raise RemoteStoreError(
                f"{operation} on {table} failed: {e}", table=table, operation=operation
            ) from e

        if response.status_code >= 400:
            raise RemoteStoreError(
                f"{operation} on {table} rejected: {self._error_message(response)}",
                table=table,
                operation=operation,
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(body, dict):
            return body.get("message") or body.get("error") or str(body)
        return str(body)

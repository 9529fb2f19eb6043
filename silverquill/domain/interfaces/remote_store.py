"""RemoteStore protocol."""

from typing import Any, Mapping, Optional, Protocol, Sequence, runtime_checkable


class Tables:
    """Table names of the remote store."""

    BOOKS = "books"
    TAGS = "tags"
    BOOK_TAGS = "book_tags"
    QUOTES = "quotes"
    READING_LOGS = "reading_logs"
    WISHLIST = "wishlist"


@runtime_checkable
class RemoteStore(Protocol):
    """Protocol for the backend relational store.

    The store offers per-statement atomicity only; there are no client-visible
    multi-statement transactions. Every call carries the caller's opaque
    access token, and a call without one is a hard failure.

    Implementations raise ``RemoteStoreError`` for any rejected call.
    """

    async def select(
        self,
        table: str,
        token: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        ascending: bool = True,
    ) -> list[dict]:
        """Fetch rows of ``table`` matching the equality ``filters``.

        Args:
            table: Table name.
            token: Opaque access token of the active identity.
            filters: Column/value pairs that must all match.
            order_by: Column to sort by (e.g. ``created_at``).
            ascending: Sort direction.

        Returns:
            list[dict]: Matching rows.
        """
        ...

    async def insert(self, table: str, rows: Sequence[Mapping[str, Any]], token: str) -> list[dict]:
        """Insert rows as one statement and return them with generated columns.

        Raises:
            RemoteStoreError: If the statement is rejected; nothing is inserted.
        """
        ...

    async def update(
        self,
        table: str,
        values: Mapping[str, Any],
        filters: Mapping[str, Any],
        token: str,
    ) -> list[dict]:
        """Update the rows matching ``filters`` and return them."""
        ...

    async def delete(self, table: str, filters: Mapping[str, Any], token: str) -> None:
        """Delete the rows matching ``filters``.

        Dependent rows are removed by the store's own referential rules.
        """
        ...

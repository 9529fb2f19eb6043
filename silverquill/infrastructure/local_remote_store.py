"""Local in-memory implementation of the RemoteStore."""

import asyncio
import copy
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..domain.errors import RemoteStoreError
from ..domain.interfaces.remote_store import RemoteStore, Tables


class LocalRemoteStore(RemoteStore):
    """Local in-memory implementation of the RemoteStore protocol.

    Behaves like the hosted store as far as the sync core can observe:
    generated ids and ``created_at``, per-statement atomicity, foreign keys,
    and ``ON DELETE CASCADE`` from books and tags to their dependents.
    Failures can be injected per table and operation for testing.
    """

    # child table, referencing column, parent table
    FOREIGN_KEYS: List[Tuple[str, str, str]] = [
        (Tables.QUOTES, "book_id", Tables.BOOKS),
        (Tables.READING_LOGS, "book_id", Tables.BOOKS),
        (Tables.BOOK_TAGS, "book_id", Tables.BOOKS),
        (Tables.BOOK_TAGS, "tag_id", Tables.TAGS),
    ]

    def __init__(self, valid_tokens: Optional[Sequence[str]] = None):
        """Initialize empty tables.

        Args:
            valid_tokens: When given, calls with any other token are rejected.
        """
        self._tables: Dict[str, List[dict]] = {
            table: []
            for table in (
                Tables.BOOKS,
                Tables.TAGS,
                Tables.BOOK_TAGS,
                Tables.QUOTES,
                Tables.READING_LOGS,
                Tables.WISHLIST,
            )
        }
        self._valid_tokens = set(valid_tokens) if valid_tokens is not None else None
        self._failures: Dict[Tuple[str, str], int] = {}
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)
        self.calls: List[Tuple[str, str]] = []

    # ===== Test helpers =====

    def fail_next(self, table: str, operation: str, times: int = 1) -> None:
        """Make the next ``times`` calls of ``operation`` on ``table`` fail."""
        self._failures[(table, operation)] = self._failures.get((table, operation), 0) + times

    def rows(self, table: str) -> List[dict]:
        """Copy of every row currently in ``table``."""
        return copy.deepcopy(self._tables[table])

    def clear(self) -> None:
        for rows in self._tables.values():
            rows.clear()
        self._failures.clear()
        self.calls.clear()

    # ===== RemoteStore =====

    async def select(
        self,
        table: str,
        token: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        ascending: bool = True,
    ) -> list[dict]:
        await self._begin(table, "select", token)
        rows = [row for row in self._tables[table] if self._matches(row, filters or {})]
        if order_by:
            rows = sorted(rows, key=lambda row: row.get(order_by) or "", reverse=not ascending)
        return copy.deepcopy(rows)

    async def insert(self, table: str, rows: Sequence[Mapping[str, Any]], token: str) -> list[dict]:
        await self._begin(table, "insert", token)

        # Validate the whole statement before writing any row.
        for row in rows:
            self._check_foreign_keys(table, row)
        if table == Tables.BOOK_TAGS:
            self._check_unique_links(rows)

        inserted = []
        for row in rows:
            stored = dict(row)
            if table != Tables.BOOK_TAGS:
                stored.setdefault("id", str(uuid.uuid4()))
            stored.setdefault("created_at", self._now())
            self._tables[table].append(stored)
            inserted.append(copy.deepcopy(stored))
        return inserted

    async def update(
        self,
        table: str,
        values: Mapping[str, Any],
        filters: Mapping[str, Any],
        token: str,
    ) -> list[dict]:
        await self._begin(table, "update", token)
        updated = []
        for row in self._tables[table]:
            if self._matches(row, filters):
                row.update(values)
                updated.append(copy.deepcopy(row))
        return updated

    async def delete(self, table: str, filters: Mapping[str, Any], token: str) -> None:
        await self._begin(table, "delete", token)
        self._delete_cascading(table, filters)

    # ===== Internals =====

    async def _begin(self, table: str, operation: str, token: str) -> None:
        # Yield like a real network call would.
        await asyncio.sleep(0)
        self.calls.append((table, operation))
        if table not in self._tables:
            raise RemoteStoreError(f"Unknown table {table}", table=table, operation=operation, status_code=404)
        if not token or (self._valid_tokens is not None and token not in self._valid_tokens):
            raise RemoteStoreError("Invalid or missing identity token", table=table, operation=operation, status_code=401)
        remaining = self._failures.get((table, operation), 0)
        if remaining:
            self._failures[(table, operation)] = remaining - 1
            raise RemoteStoreError(
                f"Simulated {operation} failure on {table}", table=table, operation=operation, status_code=503
            )

    def _now(self) -> str:
        # Strictly increasing so ordering by created_at is deterministic.
        self._clock += timedelta(milliseconds=1)
        return self._clock.isoformat()

    @staticmethod
    def _matches(row: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
        return all(row.get(column) == value for column, value in filters.items())

    def _check_foreign_keys(self, table: str, row: Mapping[str, Any]) -> None:
        for child, column, parent in self.FOREIGN_KEYS:
            if child != table:
                continue
            if not any(parent_row.get("id") == row.get(column) for parent_row in self._tables[parent]):
                raise RemoteStoreError(
                    f"insert on {table} violates foreign key {column} -> {parent}",
                    table=table,
                    operation="insert",
                    status_code=409,
                )

    def _check_unique_links(self, rows: Sequence[Mapping[str, Any]]) -> None:
        existing = {(r["book_id"], r["tag_id"]) for r in self._tables[Tables.BOOK_TAGS]}
        for row in rows:
            key = (row["book_id"], row["tag_id"])
            if key in existing:
                raise RemoteStoreError(
                    f"duplicate key {key} on {Tables.BOOK_TAGS}",
                    table=Tables.BOOK_TAGS,
                    operation="insert",
                    status_code=409,
                )
            existing.add(key)

    def _delete_cascading(self, table: str, filters: Mapping[str, Any]) -> None:
        doomed = [row for row in self._tables[table] if self._matches(row, filters)]
        self._tables[table] = [row for row in self._tables[table] if not self._matches(row, filters)]
        for row in doomed:
            for child, column, parent in self.FOREIGN_KEYS:
                if parent == table and "id" in row:
                    self._delete_cascading(child, {column: row["id"]})

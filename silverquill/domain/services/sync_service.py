"""Sync service: ordered multi-step write protocols against the remote store."""

import asyncio
import logging
import time
from typing import Any, Mapping, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel

from ..entities.book import Book, BookChanges, BookDraft, BookStatus, CoverUpload
from ..entities.identity import Identity
from ..entities.quote import Quote
from ..entities.reading_session import ReadingSession
from ..entities.results import (
    CreateBookResult,
    ProgressResult,
    StepOutcome,
    UpdateBookResult,
)
from ..entities.snapshot import GraphSnapshot
from ..entities.tag import BookTagLink, Tag
from ..entities.wishlist import WishlistItem
from ..errors import (
    CoverUploadError,
    IdentityRequiredError,
    InvariantViolation,
    RemoteStoreError,
)
from ..interfaces.cover_storage import CoverStorage
from ..interfaces.identity_provider import IdentityProvider
from ..interfaces.remote_store import RemoteStore, Tables
from .entity_graph import EntityGraph

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Step names recorded in protocol results
STEP_UPDATE_BOOK = "update_book"
STEP_INSERT_QUOTES = "insert_quotes"
STEP_INSERT_TAGS = "insert_tags"
STEP_DELETE_QUOTES = "delete_quotes"
STEP_DELETE_TAGS = "delete_tags"


def accrue_pages(current_page: int, pages_read: int, total_pages: int) -> int:
    """Return the new running total after reading ``pages_read`` pages.

    The total is clamped to ``total_pages`` no matter how much is reported.
    A book without a page count (``total_pages == 0``) just accumulates.
    """
    if total_pages <= 0:
        return current_page + pages_read
    return min(current_page + pages_read, total_pages)


def _from_row(model: Type[ModelT], row: Mapping[str, Any]) -> ModelT:
    """Build an entity from a store row; null columns fall back to defaults."""
    return model.model_validate({k: v for k, v in row.items() if v is not None})


class SyncService:
    """
    Mutates the remote store and reconciles the local EntityGraph.

    The store has no client-visible transactions, so every protocol is an
    explicit ordered sequence of steps:

    - a step that needs an earlier step's result (a generated book id, the
      delete before a re-insert) is awaited in order
    - independent steps (quote inserts vs. tag-link inserts) run concurrently
      and fail independently
    - failure of a protocol's primary step propagates to the caller
    - failure of a secondary step is absorbed and recorded as a failed
      ``StepOutcome``; already-committed steps are never rolled back, apart
      from the promotion withdrawing its book when the wishlist delete fails

    Single-field writes are optimistic: the graph changes first, then the
    store is written. A failed write keeps the local value, marks the entity
    divergent and raises; the next ``load`` reconciles it.

    Every mutation resolves the identity first and fails with
    ``IdentityRequiredError`` before any network call when there is none.
    """

    def __init__(
        self,
        remote_store: RemoteStore,
        identity_provider: IdentityProvider,
        graph: Optional[EntityGraph] = None,
        cover_storage: Optional[CoverStorage] = None,
    ):
        self.remote_store = remote_store
        self.identity_provider = identity_provider
        self.graph = graph or EntityGraph()
        self.cover_storage = cover_storage

    # ===== Identity & loading =====

    async def _resolve_identity(self, operation: str) -> Identity:
        identity = await self.identity_provider.current()
        if identity is None:
            logger.warning(f"Refusing {operation}: no active identity")
            raise IdentityRequiredError(operation=operation)
        return identity

    async def _identity(self, operation: str) -> Identity:
        """Resolve the identity, reloading the graph if it changed."""
        identity = await self._resolve_identity(operation)
        if self.graph.owner_id != identity.user_id:
            if self.graph.is_loaded:
                logger.info(f"Identity changed from {self.graph.owner_id}, discarding graph")
            await self._load_for(identity)
        return identity

    async def load(self) -> EntityGraph:
        """Load every entity of the active identity into the graph."""
        identity = await self._resolve_identity("load")
        await self._load_for(identity)
        return self.graph

    async def refresh(self) -> EntityGraph:
        """Reload the graph for reading, serving the loaded one while the store is down.

        Raises:
            RemoteStoreError: If the reload fails and nothing is loaded for this identity.
        """
        identity = await self._resolve_identity("refresh")
        try:
            await self._load_for(identity)
        except RemoteStoreError as e:
            if self.graph.owner_id != identity.user_id:
                raise
            logger.warning(f"Reload failed, serving the loaded graph for {identity.user_id}: {e}")
        return self.graph

    async def _load_for(self, identity: Identity) -> None:
        owner = {"user_id": identity.user_id}
        token = identity.access_token
        store = self.remote_store

        books, tags, links, quotes, sessions, wishlist = await asyncio.gather(
            store.select(Tables.BOOKS, token, filters=owner, order_by="created_at", ascending=False),
            store.select(Tables.TAGS, token, filters=owner),
            # Join rows carry no owner column; they are scoped by the owner's books below.
            store.select(Tables.BOOK_TAGS, token),
            store.select(Tables.QUOTES, token, filters=owner, order_by="created_at"),
            store.select(Tables.READING_LOGS, token, filters=owner, order_by="created_at", ascending=False),
            store.select(Tables.WISHLIST, token, filters=owner, order_by="created_at", ascending=False),
        )

        book_ids = {row["id"] for row in books}
        snapshot = GraphSnapshot(
            books=[_from_row(Book, row) for row in books],
            tags=[_from_row(Tag, row) for row in tags],
            links=[_from_row(BookTagLink, row) for row in links if row.get("book_id") in book_ids],
            quotes=[_from_row(Quote, row) for row in quotes],
            sessions=[_from_row(ReadingSession, row) for row in sessions],
            wishlist=[_from_row(WishlistItem, row) for row in wishlist],
        )
        self.graph.load(identity.user_id, snapshot)

    # ===== Create-with-relations =====

    async def create_book(
        self,
        draft: BookDraft,
        quotes: Sequence[str] = (),
        tag_ids: Sequence[str] = (),
        cover: Optional[CoverUpload] = None,
    ) -> CreateBookResult:
        """Insert a book, then its quotes and tag links.

        Order: cover upload (if any) -> book insert -> {quotes, tag links}
        concurrently. A failed upload or book insert raises and nothing else
        is written. A failed dependent insert leaves the book without that
        data and is reported in the result's steps.
        """
        identity = await self._identity("create_book")
        tag_ids = self._known_tag_ids(tag_ids)

        cover_url = None
        if cover is not None:
            cover_url = await self._upload_cover(identity, cover)

        rows = await self.remote_store.insert(
            Tables.BOOKS, [draft.to_row(identity.user_id, cover_url)], identity.access_token
        )
        book = _from_row(Book, rows[0])
        self.graph.put_book(book)
        logger.info(f"Created book {book.id} ({book.title!r})")

        texts = [q for q in quotes if q.strip()]
        results = await asyncio.gather(
            self._insert_quotes(identity, book.id, texts),
            self._insert_links(identity, book.id, tag_ids),
        )
        steps = [outcome for outcome in results if outcome is not None]
        return CreateBookResult(book=self.graph.book(book.id), steps=steps)

    # ===== Update-with-relations =====

    async def update_book(
        self,
        book_id: str,
        changes: BookChanges,
        quotes: Optional[Sequence[str]] = None,
        tag_ids: Optional[Sequence[str]] = None,
        cover: Optional[CoverUpload] = None,
    ) -> UpdateBookResult:
        """Update a book's row and replace its quotes and tag links.

        Each dependent set is replaced by delete-all then re-insert, with the
        quote chain and the tag chain running concurrently. A failure between
        the delete and the re-insert leaves the book with an empty set until
        the next successful update; running the same update again restores it.
        Passing None for ``quotes`` or ``tag_ids`` leaves that set alone.
        """
        identity = await self._identity("update_book")
        book = self.graph.book(book_id)
        if tag_ids is not None:
            tag_ids = self._known_tag_ids(tag_ids)

        values = changes.to_row()
        fields = changes.model_dump(exclude_unset=True)

        # Shrinking the page count drags the running total down with it.
        new_total = fields.get("total_pages", book.total_pages)
        if isinstance(new_total, int) and new_total > 0 and book.current_page > new_total:
            values["current_page"] = fields["current_page"] = new_total

        # Rejected before the upload so an invalid update leaves no orphaned cover.
        self.graph.merged_book(book_id, **fields)
        if cover is not None:
            values["cover_url"] = fields["cover_url"] = await self._upload_cover(identity, cover)

        steps = []
        if values:
            self.graph.set_book_fields(book_id, **fields)
            try:
                await self.remote_store.update(
                    Tables.BOOKS, values, {"id": book_id}, identity.access_token
                )
            except RemoteStoreError:
                self.graph.mark_divergent(book_id)
                raise
            steps.append(StepOutcome.success(STEP_UPDATE_BOOK))

        chains = []
        if quotes is not None:
            chains.append(self._replace_quotes(identity, book_id, [q for q in quotes if q.strip()]))
        if tag_ids is not None:
            chains.append(self._replace_links(identity, book_id, tag_ids))
        for chain_steps in await asyncio.gather(*chains):
            steps.extend(chain_steps)

        return UpdateBookResult(book=self.graph.book(book_id), steps=steps)

    async def _replace_quotes(self, identity: Identity, book_id: str, texts: list[str]) -> list[StepOutcome]:
        try:
            await self.remote_store.delete(Tables.QUOTES, {"book_id": book_id}, identity.access_token)
        except RemoteStoreError as e:
            logger.warning(f"Deleting quotes of book {book_id} failed: {e}")
            return [StepOutcome.failure(STEP_DELETE_QUOTES, e)]
        self.graph.replace_quotes(book_id, [])

        steps = [StepOutcome.success(STEP_DELETE_QUOTES)]
        inserted = await self._insert_quotes(identity, book_id, texts)
        if inserted is not None:
            steps.append(inserted)
        return steps

    async def _replace_links(self, identity: Identity, book_id: str, tag_ids: list[str]) -> list[StepOutcome]:
        try:
            await self.remote_store.delete(Tables.BOOK_TAGS, {"book_id": book_id}, identity.access_token)
        except RemoteStoreError as e:
            logger.warning(f"Deleting tag links of book {book_id} failed: {e}")
            return [StepOutcome.failure(STEP_DELETE_TAGS, e)]
        self.graph.replace_links(book_id, [])

        steps = [StepOutcome.success(STEP_DELETE_TAGS)]
        inserted = await self._insert_links(identity, book_id, tag_ids)
        if inserted is not None:
            steps.append(inserted)
        return steps

    async def _insert_quotes(self, identity: Identity, book_id: str, texts: list[str]) -> Optional[StepOutcome]:
        """Insert quotes for a book; absorbs failure into the returned outcome."""
        if not texts:
            return None
        rows = [{"book_id": book_id, "user_id": identity.user_id, "quote_text": text} for text in texts]
        try:
            inserted = await self.remote_store.insert(Tables.QUOTES, rows, identity.access_token)
        except RemoteStoreError as e:
            logger.warning(f"Book {book_id} kept without its quotes: {e}")
            return StepOutcome.failure(STEP_INSERT_QUOTES, e)
        self.graph.add_quotes(_from_row(Quote, row) for row in inserted)
        return StepOutcome.success(STEP_INSERT_QUOTES)

    async def _insert_links(self, identity: Identity, book_id: str, tag_ids: list[str]) -> Optional[StepOutcome]:
        """Insert tag links for a book; absorbs failure into the returned outcome."""
        if not tag_ids:
            return None
        rows = [{"book_id": book_id, "tag_id": tag_id} for tag_id in tag_ids]
        try:
            await self.remote_store.insert(Tables.BOOK_TAGS, rows, identity.access_token)
        except RemoteStoreError as e:
            logger.warning(f"Book {book_id} kept without its tags: {e}")
            return StepOutcome.failure(STEP_INSERT_TAGS, e)
        # Endpoints removed locally while the insert was in flight are not linked.
        if self.graph.find_book(book_id) is not None:
            known = {tag.id for tag in self.graph.tags()}
            self.graph.add_links(
                BookTagLink(book_id=book_id, tag_id=tag_id) for tag_id in tag_ids if tag_id in known
            )
        return StepOutcome.success(STEP_INSERT_TAGS)

    # ===== Delete-with-cascade =====

    async def delete_book(self, book_id: str) -> Book:
        """Delete a book; quotes, links and sessions go with it.

        Only the book row is deleted remotely, the store's referential rules
        remove the dependents. Locally the cascade is applied up front.
        """
        identity = await self._identity("delete_book")
        removed = self.graph.remove_book(book_id)
        try:
            await self.remote_store.delete(Tables.BOOKS, {"id": book_id}, identity.access_token)
        except RemoteStoreError:
            self.graph.mark_divergent(book_id)
            raise
        logger.info(f"Deleted book {book_id}")
        return removed

    # ===== Progress accrual =====

    async def log_reading_session(self, book_id: str, pages_read: int, minutes_read: int) -> ProgressResult:
        """Record a reading session and advance the book's running total.

        The session insert is the primary step. ``current_page`` becomes
        ``min(current_page + pages_read, total_pages)``. Status is not a
        gate: logging against a finished book is a re-read.
        """
        identity = await self._identity("log_reading_session")
        if pages_read <= 0 or minutes_read <= 0:
            raise InvariantViolation(
                "pages_read and minutes_read must be positive",
                pages_read=pages_read,
                minutes_read=minutes_read,
            )
        self.graph.book(book_id)

        rows = await self.remote_store.insert(
            Tables.READING_LOGS,
            [{
                "book_id": book_id,
                "user_id": identity.user_id,
                "pages_read": pages_read,
                "minutes_read": minutes_read,
            }],
            identity.access_token,
        )
        session = _from_row(ReadingSession, rows[0])
        self.graph.add_session(session)

        # Re-read after the await so concurrent sessions all count.
        book = self.graph.book(book_id)
        new_current = accrue_pages(book.current_page, pages_read, book.total_pages)
        updated = self.graph.set_book_fields(book_id, current_page=new_current)
        try:
            await self.remote_store.update(
                Tables.BOOKS, {"current_page": new_current}, {"id": book_id}, identity.access_token
            )
        except RemoteStoreError:
            self.graph.mark_divergent(book_id)
            raise
        return ProgressResult(session=session, book=updated)

    # ===== Move-between-collections =====

    async def promote_wishlist_item(self, item_id: str) -> Book:
        """Move a wishlist item into the library.

        The book is inserted first and the item deleted only once the insert
        succeeded, so a failed insert leaves the item untouched and creates
        nothing. If the delete then fails, the new book is deleted again and
        the error is raised, leaving the item where it was.
        """
        identity = await self._identity("promote_wishlist_item")
        item = self.graph.wishlist_item(item_id)

        rows = await self.remote_store.insert(
            Tables.BOOKS,
            [{
                "title": item.title,
                "author": item.author,
                "status": BookStatus.WANT_TO_READ.value,
                "user_id": identity.user_id,
                "review_text": item.notes,
            }],
            identity.access_token,
        )
        book = _from_row(Book, rows[0])
        self.graph.put_book(book)

        try:
            await self.remote_store.delete(Tables.WISHLIST, {"id": item_id}, identity.access_token)
        except RemoteStoreError as e:
            logger.warning(f"Could not remove wishlist item {item_id}, withdrawing book {book.id}: {e}")
            await self._withdraw_promoted_book(identity, book.id)
            raise
        self.graph.remove_wishlist_item(item_id)
        logger.info(f"Promoted wishlist item {item_id} to book {book.id}")
        return book

    async def _withdraw_promoted_book(self, identity: Identity, book_id: str) -> None:
        try:
            await self.remote_store.delete(Tables.BOOKS, {"id": book_id}, identity.access_token)
        except RemoteStoreError as e:
            # Both rows now exist; the user sees the original failure and can delete either.
            logger.error(f"Could not withdraw promoted book {book_id}: {e}")
            self.graph.mark_divergent(book_id)
            return
        self.graph.remove_book(book_id)

    # ===== Toggles =====

    async def set_favorite(self, book_id: str, value: bool) -> Book:
        return await self._set_flag(book_id, "is_favorite", value)

    async def set_bookmarked(self, book_id: str, value: bool) -> Book:
        return await self._set_flag(book_id, "is_bookmarked", value)

    async def toggle_favorite(self, book_id: str) -> Book:
        await self._identity("toggle_favorite")
        return await self.set_favorite(book_id, not self.graph.book(book_id).is_favorite)

    async def toggle_bookmarked(self, book_id: str) -> Book:
        await self._identity("toggle_bookmarked")
        return await self.set_bookmarked(book_id, not self.graph.book(book_id).is_bookmarked)

    async def _set_flag(self, book_id: str, field: str, value: bool) -> Book:
        """Flip one boolean column: locally first, then one round trip.

        Setting the value the book already has is a no-op.
        """
        identity = await self._identity(f"set_{field}")
        book = self.graph.book(book_id)
        if getattr(book, field) == value:
            return book

        updated = self.graph.set_book_fields(book_id, **{field: value})
        try:
            await self.remote_store.update(
                Tables.BOOKS, {field: value}, {"id": book_id}, identity.access_token
            )
        except RemoteStoreError:
            self.graph.mark_divergent(book_id)
            raise
        return updated

    # ===== Single-row operations =====

    async def add_quote(self, book_id: str, text: str) -> Quote:
        identity = await self._identity("add_quote")
        if not text.strip():
            raise InvariantViolation("Quote text must not be blank", book_id=book_id)
        self.graph.book(book_id)
        rows = await self.remote_store.insert(
            Tables.QUOTES,
            [{"book_id": book_id, "user_id": identity.user_id, "quote_text": text}],
            identity.access_token,
        )
        quote = _from_row(Quote, rows[0])
        self.graph.add_quotes([quote])
        return quote

    async def create_tag(self, name: str, color: str = "#6b7280") -> Tag:
        identity = await self._identity("create_tag")
        if not name.strip():
            raise InvariantViolation("Tag name must not be blank")
        rows = await self.remote_store.insert(
            Tables.TAGS,
            [{"user_id": identity.user_id, "name": name, "color": color}],
            identity.access_token,
        )
        tag = _from_row(Tag, rows[0])
        self.graph.put_tag(tag)
        return tag

    async def delete_tag(self, tag_id: str) -> Tag:
        """Delete a tag; its links to books go with it."""
        identity = await self._identity("delete_tag")
        removed = self.graph.remove_tag(tag_id)
        try:
            await self.remote_store.delete(Tables.TAGS, {"id": tag_id}, identity.access_token)
        except RemoteStoreError:
            self.graph.mark_divergent(tag_id)
            raise
        return removed

    async def add_wishlist_item(self, title: str, author: str = "", notes: Optional[str] = None) -> WishlistItem:
        identity = await self._identity("add_wishlist_item")
        if not title.strip():
            raise InvariantViolation("Wishlist title must not be blank")
        rows = await self.remote_store.insert(
            Tables.WISHLIST,
            [{"book_title": title, "author": author, "notes": notes, "user_id": identity.user_id}],
            identity.access_token,
        )
        item = _from_row(WishlistItem, rows[0])
        self.graph.put_wishlist_item(item)
        return item

    async def remove_wishlist_item(self, item_id: str) -> WishlistItem:
        identity = await self._identity("remove_wishlist_item")
        removed = self.graph.remove_wishlist_item(item_id)
        try:
            await self.remote_store.delete(Tables.WISHLIST, {"id": item_id}, identity.access_token)
        except RemoteStoreError:
            self.graph.mark_divergent(item_id)
            raise
        return removed

    # ===== Helpers =====

    def _known_tag_ids(self, tag_ids: Sequence[str]) -> list[str]:
        """De-duplicate tag ids, failing fast on any the graph does not know."""
        unique = list(dict.fromkeys(tag_ids))
        for tag_id in unique:
            self.graph.tag(tag_id)
        return unique

    async def _upload_cover(self, identity: Identity, cover: CoverUpload) -> str:
        if self.cover_storage is None:
            raise CoverUploadError("No cover storage configured")
        filename = f"{int(time.time() * 1000)}.{cover.extension}"
        return await self.cover_storage.upload(
            identity.user_id, filename, cover.content, cover.content_type
        )

"""Local in-memory graph of everything the active identity owns."""

import logging
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from ..entities.book import Book
from ..entities.quote import Quote
from ..entities.reading_session import ReadingSession
from ..entities.snapshot import GraphSnapshot
from ..entities.tag import BookTagLink, Tag
from ..entities.wishlist import WishlistItem
from ..errors import EntityNotFoundError, InvariantViolation

logger = logging.getLogger(__name__)


class EntityGraph:
    """
    Local representation of the relational domain for a single identity.

    The graph is what the interface reads from. It is mutated only by
    ``SyncService`` and enforces the relational invariants on every mutation:

    - a BookTagLink must reference an existing Book and an existing Tag
    - quotes and reading sessions belong to an existing Book
    - removing a Book removes its quotes, sessions and links
    - removing a Tag removes its links
    - ``current_page <= total_pages`` whenever ``total_pages > 0``

    Switching identity discards the graph; ``load`` replaces it wholesale.
    """

    def __init__(self):
        self._owner_id: Optional[str] = None
        self._books: dict[str, Book] = {}
        self._tags: dict[str, Tag] = {}
        self._links: dict[tuple[str, str], BookTagLink] = {}
        self._quotes: dict[str, Quote] = {}
        self._sessions: dict[str, ReadingSession] = {}
        self._wishlist: dict[str, WishlistItem] = {}
        self._divergent: set[str] = set()

    # ===== Lifecycle =====

    @property
    def owner_id(self) -> Optional[str]:
        """Identity the graph currently holds entities for."""
        return self._owner_id

    @property
    def is_loaded(self) -> bool:
        return self._owner_id is not None

    def reset(self) -> None:
        """Discard every entity and forget the owner."""
        self._owner_id = None
        self._books.clear()
        self._tags.clear()
        self._links.clear()
        self._quotes.clear()
        self._sessions.clear()
        self._wishlist.clear()
        self._divergent.clear()

    def load(self, owner_id: str, snapshot: GraphSnapshot) -> None:
        """Replace the whole graph with ``snapshot`` for ``owner_id``.

        Rows are taken as the store returned them so that ``violations``
        can report any inconsistency the store itself holds.
        """
        self.reset()
        self._owner_id = owner_id
        self._books = {book.id: book for book in snapshot.books}
        self._tags = {tag.id: tag for tag in snapshot.tags}
        self._links = {(link.book_id, link.tag_id): link for link in snapshot.links}
        self._quotes = {quote.id: quote for quote in snapshot.quotes}
        self._sessions = {session.id: session for session in snapshot.sessions}
        self._wishlist = {item.id: item for item in snapshot.wishlist}
        logger.info(
            f"Graph loaded for {owner_id}: {len(self._books)} books, "
            f"{len(self._tags)} tags, {len(self._quotes)} quotes"
        )

    # ===== Reads =====

    def find_book(self, book_id: str) -> Optional[Book]:
        return self._books.get(book_id)

    def book(self, book_id: str) -> Book:
        """Return a book or raise EntityNotFoundError."""
        if book_id not in self._books:
            raise EntityNotFoundError("Book", book_id)
        return self._books[book_id]

    def books(self) -> list[Book]:
        """All books, newest first."""
        return sorted(self._books.values(), key=lambda b: b.created_at, reverse=True)

    def tag(self, tag_id: str) -> Tag:
        if tag_id not in self._tags:
            raise EntityNotFoundError("Tag", tag_id)
        return self._tags[tag_id]

    def tags(self) -> list[Tag]:
        return list(self._tags.values())

    def links(self) -> list[BookTagLink]:
        return list(self._links.values())

    def links_for(self, book_id: str) -> list[BookTagLink]:
        return [link for link in self._links.values() if link.book_id == book_id]

    def tags_for(self, book_id: str) -> list[Tag]:
        """Tags attached to a book, skipping links whose tag is unknown."""
        return [
            self._tags[link.tag_id]
            for link in self.links_for(book_id)
            if link.tag_id in self._tags
        ]

    def quotes(self) -> list[Quote]:
        """Every quote, newest first."""
        return sorted(self._quotes.values(), key=lambda q: q.created_at, reverse=True)

    def quotes_for(self, book_id: str) -> list[Quote]:
        """Quotes of one book in the order they were saved."""
        return sorted(
            (q for q in self._quotes.values() if q.book_id == book_id),
            key=lambda q: q.created_at,
        )

    def sessions_for(self, book_id: str) -> list[ReadingSession]:
        """Reading sessions of one book, newest first."""
        return sorted(
            (s for s in self._sessions.values() if s.book_id == book_id),
            key=lambda s: s.created_at,
            reverse=True,
        )

    def wishlist(self) -> list[WishlistItem]:
        return sorted(self._wishlist.values(), key=lambda w: w.created_at, reverse=True)

    def wishlist_item(self, item_id: str) -> WishlistItem:
        if item_id not in self._wishlist:
            raise EntityNotFoundError("WishlistItem", item_id)
        return self._wishlist[item_id]

    # ===== Mutations (SyncService only) =====

    def put_book(self, book: Book) -> None:
        self._check_owner(book.owner_id, "Book", book.id)
        self._books[book.id] = book

    def set_book_fields(self, book_id: str, **fields: Any) -> Book:
        """Apply field changes to a book, re-validating the whole entity.

        Raises:
            EntityNotFoundError: If the book is unknown.
            InvariantViolation: If the result would be invalid.
        """
        updated = self.merged_book(book_id, **fields)
        self._books[book_id] = updated
        return updated

    def merged_book(self, book_id: str, **fields: Any) -> Book:
        """Return the book with ``fields`` applied, without storing it."""
        current = self.book(book_id)
        try:
            return Book.model_validate({**current.model_dump(), **fields})
        except ValidationError as e:
            raise InvariantViolation(f"Invalid update for book {book_id}: {e}", book_id=book_id) from e

    def remove_book(self, book_id: str) -> Book:
        """Remove a book together with its quotes, sessions and links."""
        book = self.book(book_id)
        del self._books[book_id]
        self._quotes = {k: q for k, q in self._quotes.items() if q.book_id != book_id}
        self._sessions = {k: s for k, s in self._sessions.items() if s.book_id != book_id}
        self._links = {k: l for k, l in self._links.items() if l.book_id != book_id}
        return book

    def put_tag(self, tag: Tag) -> None:
        self._check_owner(tag.owner_id, "Tag", tag.id)
        self._tags[tag.id] = tag

    def remove_tag(self, tag_id: str) -> Tag:
        """Remove a tag and every link pointing at it."""
        tag = self.tag(tag_id)
        del self._tags[tag_id]
        self._links = {k: l for k, l in self._links.items() if l.tag_id != tag_id}
        return tag

    def add_quotes(self, quotes: Iterable[Quote]) -> None:
        for quote in quotes:
            self._check_owner(quote.owner_id, "Quote", quote.id)
            if quote.book_id not in self._books:
                raise InvariantViolation(
                    f"Quote {quote.id} references unknown book {quote.book_id}",
                    quote_id=quote.id,
                    book_id=quote.book_id,
                )
            self._quotes[quote.id] = quote

    def replace_quotes(self, book_id: str, quotes: Iterable[Quote]) -> None:
        """Drop every quote of ``book_id`` and attach ``quotes`` instead."""
        self.book(book_id)
        self._quotes = {k: q for k, q in self._quotes.items() if q.book_id != book_id}
        self.add_quotes(quotes)

    def add_links(self, links: Iterable[BookTagLink]) -> None:
        """Attach tags to books; both endpoints must be present."""
        for link in links:
            if link.book_id not in self._books or link.tag_id not in self._tags:
                raise InvariantViolation(
                    f"Link {link.book_id}/{link.tag_id} references a missing endpoint",
                    book_id=link.book_id,
                    tag_id=link.tag_id,
                )
            self._links[(link.book_id, link.tag_id)] = link

    def replace_links(self, book_id: str, links: Iterable[BookTagLink]) -> None:
        self.book(book_id)
        self._links = {k: l for k, l in self._links.items() if l.book_id != book_id}
        self.add_links(links)

    def add_session(self, session: ReadingSession) -> None:
        self._check_owner(session.owner_id, "ReadingSession", session.id)
        if session.book_id not in self._books:
            raise InvariantViolation(
                f"Session {session.id} references unknown book {session.book_id}",
                session_id=session.id,
                book_id=session.book_id,
            )
        self._sessions[session.id] = session

    def put_wishlist_item(self, item: WishlistItem) -> None:
        self._check_owner(item.owner_id, "WishlistItem", item.id)
        self._wishlist[item.id] = item

    def remove_wishlist_item(self, item_id: str) -> WishlistItem:
        item = self.wishlist_item(item_id)
        del self._wishlist[item_id]
        return item

    # ===== Divergence tracking =====

    @property
    def divergent(self) -> frozenset[str]:
        """Ids of entities whose local state was not confirmed by the store."""
        return frozenset(self._divergent)

    def mark_divergent(self, entity_id: str) -> None:
        logger.warning(f"Local state of {entity_id} diverges from the remote store")
        self._divergent.add(entity_id)

    # ===== Consistency =====

    def violations(self) -> list[str]:
        """Describe every relational invariant the graph currently breaks."""
        problems = []
        for (book_id, tag_id) in self._links:
            if book_id not in self._books:
                problems.append(f"link {book_id}/{tag_id}: book missing")
            if tag_id not in self._tags:
                problems.append(f"link {book_id}/{tag_id}: tag missing")
        for quote in self._quotes.values():
            if quote.book_id not in self._books:
                problems.append(f"quote {quote.id}: book {quote.book_id} missing")
        for session in self._sessions.values():
            if session.book_id not in self._books:
                problems.append(f"session {session.id}: book {session.book_id} missing")
        for book in self._books.values():
            if book.total_pages > 0 and book.current_page > book.total_pages:
                problems.append(f"book {book.id}: current_page beyond total_pages")
        return problems

    def _check_owner(self, owner_id: str, entity: str, entity_id: str) -> None:
        if self._owner_id is None:
            raise InvariantViolation(f"Graph is not loaded; cannot hold {entity} {entity_id}")
        if owner_id != self._owner_id:
            raise InvariantViolation(
                f"{entity} {entity_id} belongs to {owner_id}, not {self._owner_id}",
                entity_id=entity_id,
            )

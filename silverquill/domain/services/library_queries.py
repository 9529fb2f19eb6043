"""Read-side views computed from the entity graph."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from ..entities.book import Book, BookStatus
from .entity_graph import EntityGraph

ALL = "All"


class SavedTab(str, Enum):
    FAVORITES = "favorites"
    BOOKMARKED = "bookmarked"


class QuoteView(BaseModel):
    """A quote together with the book it came from."""

    id: str
    text: str
    book_id: str
    book_title: Optional[str] = None
    book_author: Optional[str] = None
    created_at: datetime


def filter_books(graph: EntityGraph, search: str = "", filter: str = ALL) -> list[Book]:
    """Books matching a search string and a status-or-tag filter.

    Args:
        graph: The loaded graph.
        search: Case-insensitive substring of title or author.
        filter: ``"All"``, a status value, or a tag id.
    """
    needle = search.lower()
    statuses = {status.value for status in BookStatus}

    def matches(book: Book) -> bool:
        if needle and needle not in book.title.lower() and needle not in book.author.lower():
            return False
        if filter == ALL:
            return True
        if filter in statuses:
            return book.status.value == filter
        return any(tag.id == filter for tag in graph.tags_for(book.id))

    return [book for book in graph.books() if matches(book)]


def saved_books(graph: EntityGraph, tab: SavedTab = SavedTab.FAVORITES) -> list[Book]:
    if tab == SavedTab.FAVORITES:
        return [book for book in graph.books() if book.is_favorite]
    return [book for book in graph.books() if book.is_bookmarked]


def quote_feed(graph: EntityGraph) -> list[QuoteView]:
    """Every quote, newest first, with its book's title and author."""
    feed = []
    for quote in graph.quotes():
        book = graph.find_book(quote.book_id)
        feed.append(
            QuoteView(
                id=quote.id,
                text=quote.text,
                book_id=quote.book_id,
                book_title=book.title if book else None,
                book_author=book.author if book else None,
                created_at=quote.created_at,
            )
        )
    return feed


def progress_percent(book: Book) -> float:
    """Reading progress in percent, 0 for books without a page count."""
    if book.total_pages <= 0:
        return 0.0
    return min(100.0, max(0.0, book.current_page / book.total_pages * 100))

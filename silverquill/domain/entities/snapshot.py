"""Snapshot of everything one identity owns, as loaded from the store."""

from pydantic import BaseModel, Field

from .book import Book
from .quote import Quote
from .reading_session import ReadingSession
from .tag import BookTagLink, Tag
from .wishlist import WishlistItem


class GraphSnapshot(BaseModel):
    """Rows of every table for a single owner."""

    books: list[Book] = Field(default_factory=list)
    tags: list[Tag] = Field(default_factory=list)
    links: list[BookTagLink] = Field(default_factory=list)
    quotes: list[Quote] = Field(default_factory=list)
    sessions: list[ReadingSession] = Field(default_factory=list)
    wishlist: list[WishlistItem] = Field(default_factory=list)

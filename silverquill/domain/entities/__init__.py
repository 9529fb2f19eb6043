"""Domain entities for the reading journal."""

from .book import Book, BookChanges, BookDraft, BookStatus, CoverUpload
from .cache import CachedResponse, CacheEntry, CacheRequest, is_cacheable, origin_of
from .identity import Identity
from .quote import Quote
from .reading_session import ReadingSession
from .results import (
    CreateBookResult,
    ProgressResult,
    ProtocolResult,
    StepOutcome,
    UpdateBookResult,
)
from .snapshot import GraphSnapshot
from .tag import BookTagLink, Tag
from .wishlist import WishlistItem

__all__ = [
    # Library entities
    "Book",
    "BookDraft",
    "BookChanges",
    "BookStatus",
    "CoverUpload",
    "Tag",
    "BookTagLink",
    "Quote",
    "ReadingSession",
    "WishlistItem",
    "GraphSnapshot",
    # Identity
    "Identity",
    # Protocol results
    "StepOutcome",
    "ProtocolResult",
    "CreateBookResult",
    "UpdateBookResult",
    "ProgressResult",
    # Asset cache entities
    "CacheRequest",
    "CachedResponse",
    "CacheEntry",
    "is_cacheable",
    "origin_of",
]

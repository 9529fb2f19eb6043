"""Wishlist ("To Be Read") entity."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class WishlistItem(BaseModel):
    """A book the user wants to read but has not started.

    Independent of every other entity; may be promoted into a Book.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    owner_id: str = Field(alias="user_id")
    title: str = Field(min_length=1, alias="book_title")
    author: str = Field(default="")
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

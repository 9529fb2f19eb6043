"""Request bodies accepted by the journal API."""

from typing import Optional

from pydantic import BaseModel, Field

from ..domain.entities.book import BookChanges, BookDraft


class CreateBookRequest(BookDraft):
    quotes: list[str] = Field(default_factory=list)
    tag_ids: list[str] = Field(default_factory=list)


class UpdateBookRequest(BookChanges):
    """Unset ``quotes``/``tag_ids`` leave that relation untouched."""

    quotes: Optional[list[str]] = None
    tag_ids: Optional[list[str]] = None

    def changes(self) -> BookChanges:
        fields = self.model_dump(exclude_unset=True, exclude={"quotes", "tag_ids"})
        return BookChanges(**fields)


class LogSessionRequest(BaseModel):
    pages_read: int = Field(gt=0)
    minutes_read: int = Field(gt=0)


class QuoteRequest(BaseModel):
    text: str = Field(min_length=1)


class FlagRequest(BaseModel):
    """Target value for a toggle; omitted means flip the current value."""

    value: Optional[bool] = None


class TagRequest(BaseModel):
    name: str = Field(min_length=1)
    color: str = "#6b7280"


class WishlistRequest(BaseModel):
    title: str = Field(min_length=1)
    author: str = ""
    notes: Optional[str] = None


class ThemeRequest(BaseModel):
    theme: str

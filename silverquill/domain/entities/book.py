"""Book entities for the reading journal."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BookStatus(str, Enum):
    """Reading status of a book.

    Free-form classification: no transition between statuses is forbidden.
    """

    WANT_TO_READ = "Want to Read"
    READING = "Reading"
    READ = "Read"
    DNF = "DNF"


class Book(BaseModel):
    """Book entity as stored in the ``books`` table."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)

    id: str = Field(description="Store-generated identifier")
    owner_id: str = Field(alias="user_id", description="Identity owning the book")
    title: str = Field(min_length=1)
    author: str = Field(default="")
    status: BookStatus = BookStatus.READING
    rating: int = Field(default=0, ge=0, le=5, alias="rating_overall")
    review: Optional[str] = Field(default=None, alias="review_text")
    cover_url: Optional[str] = None
    current_page: int = Field(default=0, ge=0)
    total_pages: int = Field(default=0, ge=0)
    is_favorite: bool = False
    is_bookmarked: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def _check_progress(self) -> "Book":
        if self.total_pages > 0 and self.current_page > self.total_pages:
            raise ValueError(
                f"current_page {self.current_page} exceeds total_pages {self.total_pages}"
            )
        return self


class BookDraft(BaseModel):
    """Fields supplied by the user when logging a new book."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1)
    author: str = Field(default="")
    status: BookStatus = BookStatus.READING
    rating: int = Field(default=0, ge=0, le=5, alias="rating_overall")
    review: Optional[str] = Field(default=None, alias="review_text")
    total_pages: int = Field(default=0, ge=0)

    def to_row(self, owner_id: str, cover_url: Optional[str] = None) -> dict:
        """Build the ``books`` insert row for this draft."""
        row = self.model_dump(by_alias=True, mode="json")
        row["user_id"] = owner_id
        row["cover_url"] = cover_url
        row["current_page"] = 0
        return row


class BookChanges(BaseModel):
    """Partial update of a book's own columns; unset fields are left alone."""

    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(default=None, min_length=1)
    author: Optional[str] = None
    status: Optional[BookStatus] = None
    rating: Optional[int] = Field(default=None, ge=0, le=5, alias="rating_overall")
    review: Optional[str] = Field(default=None, alias="review_text")
    total_pages: Optional[int] = Field(default=None, ge=0)

    def to_row(self) -> dict:
        """Return only the columns that were explicitly set."""
        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")


class CoverUpload(BaseModel):
    """A cover image picked by the user, uploaded before the book row is written."""

    filename: str = Field(min_length=1)
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def extension(self) -> str:
        """File extension of the original filename, without the dot."""
        if "." not in self.filename:
            return "bin"
        return self.filename.rsplit(".", 1)[-1].lower()

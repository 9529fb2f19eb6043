"""Quote entity."""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class Quote(BaseModel):
    """A passage saved from a book; deleted together with its book."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    book_id: str
    owner_id: str = Field(alias="user_id")
    text: str = Field(min_length=1, alias="quote_text")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

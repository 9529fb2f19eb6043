"""Reading session entity."""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class ReadingSession(BaseModel):
    """Append-only record of one sitting with a book (``reading_logs`` table).

    Sessions are the history of record; ``Book.current_page`` is derived from
    them as a clamped running total.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "log-001",
                "book_id": "book-42",
                "user_id": "user-7",
                "pages_read": 25,
                "minutes_read": 40,
            }
        },
    )

    id: str
    book_id: str
    owner_id: str = Field(alias="user_id")
    pages_read: int = Field(gt=0)
    minutes_read: int = Field(gt=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

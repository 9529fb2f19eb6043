"""Tag entities and the book/tag join."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Tag(BaseModel):
    """User-defined label.

    Names are not unique per owner; duplicates are tolerated.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    owner_id: str = Field(alias="user_id")
    name: str = Field(min_length=1)
    color: Optional[str] = Field(default="#6b7280")


class BookTagLink(BaseModel):
    """Row of the ``book_tags`` join table.

    A link must not outlive either endpoint.
    """

    model_config = ConfigDict(frozen=True)

    book_id: str
    tag_id: str

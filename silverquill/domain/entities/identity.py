"""Identity consumed by the sync core."""

from pydantic import BaseModel, ConfigDict, Field


class Identity(BaseModel):
    """The active user as issued by the auth collaborator.

    The access token is opaque: it is forwarded with every RemoteStore call
    and never interpreted or refreshed here.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    access_token: str = Field(min_length=1, repr=False)

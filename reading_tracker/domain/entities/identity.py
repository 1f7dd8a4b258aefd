"""Identity entity issued by the identity provider."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Identity(BaseModel):
    """Authenticated user. `uid` is the sole tenant key for all data."""

    model_config = ConfigDict(frozen=True)

    uid: str = Field(min_length=1)
    display_name: Optional[str] = None
    email: Optional[str] = None

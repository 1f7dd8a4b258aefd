"""Reading session submission entities."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RejectionReason(str, Enum):
    """Why a reading session submission was rejected."""

    INVALID_RANGE = "InvalidRange"
    EXCEEDS_BOOK_LENGTH = "ExceedsBookLength"
    ZERO_LENGTH_SESSION = "ZeroLengthSession"
    WOULD_EXCEED_REMAINING_PAGES = "WouldExceedRemainingPages"


class SessionSubmission(BaseModel):
    """Raw reading session input as submitted by the user.

    Page numbers are left untyped on purpose: coercion and range checks
    belong to the session validator so that bad input is reported with a
    rejection reason rather than a schema error.
    """

    start_page: Any = None
    end_page: Any = None
    takeaway: Optional[str] = Field(default=None, max_length=5000)
    date: Optional[datetime] = Field(default=None, description="Defaults to submission time")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "start_page": 1,
                "end_page": 50,
                "takeaway": "The opening chapters set up the desert planet.",
            }
        }
    )

    @field_validator("date")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Naive dates from form inputs are taken as UTC.
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class ValidatedSession(BaseModel):
    """A session that passed validation against a book snapshot."""

    model_config = ConfigDict(frozen=True)

    start_page: int = Field(ge=1)
    end_page: int = Field(ge=1)
    session_pages: int = Field(ge=1)
    takeaway: str = ""
    date: Optional[datetime] = None

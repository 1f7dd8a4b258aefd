"""Reading session entities for the reading tracker application."""
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .book import BookProgressUpdate, utc_now


class ReadingSession(BaseModel):
    """Append-only ledger entry: one logged interval of pages read."""

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "0c9e0f43-4a70-4d43-93c5-bf8fa1f1b0a2",
                "book_id": "2f1d7c1e-0a53-4f6e-9a55-3f0b7d1f8c11",
                "user_id": "uid-123",
                "start_page": 1,
                "end_page": 50,
                "pages_read_this_session": 50,
                "takeaway": "",
                "resulting_pages_read": 50,
            }
        },
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    book_id: str
    user_id: str
    start_page: int = Field(ge=1)
    end_page: int = Field(ge=1)
    pages_read_this_session: int = Field(ge=1)
    takeaway: str = ""
    date: datetime = Field(default_factory=utc_now)
    resulting_pages_read: int = Field(ge=0, description="Book pages_read right after this session")
    committed_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _check_page_range(self) -> "ReadingSession":
        if self.end_page < self.start_page:
            raise ValueError("end_page must not be lower than start_page")
        if self.pages_read_this_session != self.end_page - self.start_page + 1:
            raise ValueError("pages_read_this_session must equal end_page - start_page + 1")
        return self


class ReconciliationResult(BaseModel):
    """Output of the progress reconciler: the session record and book update."""

    model_config = ConfigDict(frozen=True)

    session: ReadingSession
    progress: BookProgressUpdate

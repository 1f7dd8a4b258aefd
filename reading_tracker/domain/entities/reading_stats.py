"""Reading statistics entities."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ReadingStats(BaseModel):
    """Simple aggregation over a book's session history."""

    book_id: str
    session_count: int = Field(ge=0)
    pages_logged: int = Field(ge=0, description="Sum of pages over all sessions, including re-reads")
    average_pages_per_session: float = Field(ge=0)
    pages_read: int = Field(ge=0)
    total_pages: Optional[int] = None
    remaining_pages: Optional[int] = None
    progress_percent: int = Field(ge=0, le=100)
    first_session_date: Optional[datetime] = None
    last_session_date: Optional[datetime] = None

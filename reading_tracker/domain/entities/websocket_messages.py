"""WebSocket message models for the live book and session feeds."""

from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from .book import Book
from .book_query import BookQuery
from .reading_session import ReadingSession


# ===== Client → Server Messages =====


class FeedQueryUpdate(BaseModel):
    """Change the filter/sort criteria of an open feed."""

    type: Literal["feed.query"] = "feed.query"
    query: BookQuery = Field(default_factory=BookQuery)


# Union type for all client messages
ClientMessage = Union[FeedQueryUpdate]


# ===== Server → Client Messages =====


class BooksSnapshot(BaseModel):
    """Full, filtered view of the owner's books after a change."""

    type: Literal["books.snapshot"] = "books.snapshot"
    books: list[Book]
    total: int = Field(ge=0, description="Number of books before filtering")


class SessionsSnapshot(BaseModel):
    """A book's full session history, newest first, after a commit."""

    type: Literal["sessions.snapshot"] = "sessions.snapshot"
    book_id: str
    sessions: list[ReadingSession]


class ErrorCode(str, Enum):
    """Error codes for WebSocket errors."""

    INVALID_MESSAGE = "INVALID_MESSAGE"
    AUTH_FAILED = "AUTH_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorMessage(BaseModel):
    """Error message from server."""

    type: Literal["error"] = "error"
    code: ErrorCode
    message: str
    detail: Optional[str] = None


# Union type for all server messages
ServerMessage = Union[BooksSnapshot, SessionsSnapshot, ErrorMessage]

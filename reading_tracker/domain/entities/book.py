"""Book entities for the reading tracker application."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


CATEGORIES = [
    "Fiction",
    "Non-Fiction",
    "Science",
    "Fantasy",
    "Biography",
    "History",
    "Sci-Fi",
    "Mystery",
    "Thriller",
    "Romance",
    "Self-Help",
    "Other",
]


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class BookStatus(str, Enum):
    """Reading lifecycle status of a book."""

    WANT_TO_READ = "Want to Read"
    READING = "Reading"
    FINISHED = "Finished"


class BookRef(NamedTuple):
    """Store path of a book: the owning tenant and the book id."""

    user_id: str
    book_id: str


class Book(BaseModel):
    """A tracked title owned by exactly one user.

    `pages_read` is the denormalized cumulative progress. It is only
    changed by session commits and by edits that shrink `total_pages`.
    `version` is bumped by the store on every write and guards
    conditional writes.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str = Field(min_length=1)

    title: str = Field(min_length=1, max_length=300)
    author: str = Field(min_length=1, max_length=200)
    category: str = Field(min_length=1, max_length=100)
    isbn: Optional[str] = None
    description: Optional[str] = None

    cover_url: str = Field(min_length=1)

    status: BookStatus = BookStatus.WANT_TO_READ
    total_pages: Optional[int] = Field(default=None, ge=1)
    pages_read: int = Field(default=0, ge=0)
    version: int = Field(default=0, ge=0)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "2f1d7c1e-0a53-4f6e-9a55-3f0b7d1f8c11",
                "user_id": "uid-123",
                "title": "Dune",
                "author": "Frank Herbert",
                "category": "Sci-Fi",
                "cover_url": "https://picsum.photos/seed/Dune/300/450",
                "status": "Reading",
                "total_pages": 412,
                "pages_read": 120,
            }
        }
    )

    @model_validator(mode="after")
    def _check_progress_bounds(self) -> "Book":
        if self.total_pages is not None and self.pages_read > self.total_pages:
            raise ValueError(
                f"pages_read ({self.pages_read}) cannot exceed total_pages ({self.total_pages})"
            )
        return self

    @property
    def ref(self) -> BookRef:
        return BookRef(self.user_id, self.id)

    @property
    def progress_percent(self) -> int:
        if not self.total_pages:
            return 0
        return round(self.pages_read / self.total_pages * 100)

    @property
    def remaining_pages(self) -> Optional[int]:
        if self.total_pages is None:
            return None
        return self.total_pages - self.pages_read

    def with_changes(self, **changes) -> "Book":
        """Return a validated copy of this book with `changes` applied."""
        return Book.model_validate({**self.model_dump(), **changes})


class BookDraft(BaseModel):
    """User input for adding a book."""

    title: str = Field(min_length=1, max_length=300)
    author: str = Field(min_length=1, max_length=200)
    category: str = Field(min_length=1, max_length=100)
    status: BookStatus = BookStatus.WANT_TO_READ
    total_pages: Optional[int] = Field(default=None, ge=1)
    isbn: Optional[str] = None
    description: Optional[str] = None
    cover_url: Optional[str] = Field(default=None, description="Cover URL supplied directly by the user")


class BookChanges(BaseModel):
    """Partial user input for editing a book.

    Only fields that were explicitly set are applied. Setting `cover_url`
    to an empty string clears the cover; setting `total_pages` to None
    removes the declared length.
    """

    title: Optional[str] = Field(default=None, min_length=1, max_length=300)
    author: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    status: Optional[BookStatus] = None
    total_pages: Optional[int] = Field(default=None, ge=1)
    isbn: Optional[str] = None
    description: Optional[str] = None
    cover_url: Optional[str] = None


class BookProgressUpdate(BaseModel):
    """Book fields written together with a reading session."""

    model_config = ConfigDict(frozen=True)

    pages_read: int = Field(ge=0)
    status: BookStatus
    updated_at: datetime

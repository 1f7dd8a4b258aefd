"""Domain entities for the reading tracker application."""

from .book import (
    CATEGORIES,
    Book,
    BookChanges,
    BookDraft,
    BookProgressUpdate,
    BookRef,
    BookStatus,
    utc_now,
)
from .book_query import ALL, BookOrder, BookQuery
from .cover import CoverResolution, CoverUpload
from .errors import (
    AuthenticationError,
    BookNotFoundError,
    CleanupWarning,
    CommitError,
    ConcurrentModificationError,
    PermissionDeniedError,
    PolicyError,
    ReadingTrackerError,
    StoreError,
    StoreUnavailableError,
    ValidationError,
)
from .identity import Identity
from .reading_session import ReadingSession, ReconciliationResult
from .reading_stats import ReadingStats
from .session_submission import RejectionReason, SessionSubmission, ValidatedSession
from .websocket_messages import (
    BooksSnapshot,
    ClientMessage,
    ErrorCode,
    ErrorMessage,
    FeedQueryUpdate,
    ServerMessage,
    SessionsSnapshot,
)

__all__ = [
    # Book entities
    "Book",
    "BookChanges",
    "BookDraft",
    "BookProgressUpdate",
    "BookRef",
    "BookStatus",
    "CATEGORIES",
    "utc_now",
    # Query entities
    "ALL",
    "BookOrder",
    "BookQuery",
    # Session entities
    "ReadingSession",
    "ReconciliationResult",
    "RejectionReason",
    "SessionSubmission",
    "ValidatedSession",
    "ReadingStats",
    # Cover entities
    "CoverResolution",
    "CoverUpload",
    # Identity
    "Identity",
    # Errors
    "AuthenticationError",
    "BookNotFoundError",
    "CleanupWarning",
    "CommitError",
    "ConcurrentModificationError",
    "PermissionDeniedError",
    "PolicyError",
    "ReadingTrackerError",
    "StoreError",
    "StoreUnavailableError",
    "ValidationError",
    # WebSocket message entities
    "BooksSnapshot",
    "ClientMessage",
    "ErrorCode",
    "ErrorMessage",
    "FeedQueryUpdate",
    "ServerMessage",
    "SessionsSnapshot",
]

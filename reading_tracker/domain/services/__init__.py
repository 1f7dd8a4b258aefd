"""Domain services for the reading tracker application."""

from .book_service import BookService
from .commit_coordinator import CommitCoordinator
from .cover_policy import CoverPolicy, is_valid_http_url, placeholder_cover_url
from .progress_reconciler import clamp_pages_read, derive_status, reconcile
from .progress_service import ProgressService
from .projection_feed import ProjectionFeed, filter_books, project, sort_books
from .reading_stats import sessions_for_display, summarize_sessions
from .session_validator import validate_session

__all__ = [
    "BookService",
    "CommitCoordinator",
    "CoverPolicy",
    "ProgressService",
    "ProjectionFeed",
    "clamp_pages_read",
    "derive_status",
    "filter_books",
    "is_valid_http_url",
    "placeholder_cover_url",
    "project",
    "reconcile",
    "sessions_for_display",
    "sort_books",
    "summarize_sessions",
    "validate_session",
]

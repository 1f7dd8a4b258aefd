"""Validation of reading session submissions against a book snapshot."""

from typing import Any, Optional

from ..entities.book import Book
from ..entities.errors import ValidationError
from ..entities.session_submission import RejectionReason, SessionSubmission, ValidatedSession


def _coerce_page(value: Any) -> Optional[int]:
    """Coerce a raw page number to int, or None if it is not an integer."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def validate_session(submission: SessionSubmission, book: Book) -> ValidatedSession:
    """Check a session submission against the book's length and progress.

    Rules are applied in order and the first failing rule wins. Books that
    are already finished still accept sessions (re-reading); the
    reconciler clamps their progress.

    Args:
        submission: The raw session input.
        book: Snapshot of the book the session is logged against.

    Returns:
        ValidatedSession: The accepted session with its page count.

    Raises:
        ValidationError: With the `RejectionReason` of the failing rule.
    """
    start_page = _coerce_page(submission.start_page)
    end_page = _coerce_page(submission.end_page)

    if start_page is None or end_page is None or start_page <= 0 or end_page <= 0:
        raise ValidationError(
            RejectionReason.INVALID_RANGE,
            "Start and end page must be positive whole numbers",
        )

    if end_page < start_page:
        raise ValidationError(
            RejectionReason.INVALID_RANGE,
            f"End page ({end_page}) cannot be before start page ({start_page})",
        )

    total_pages = book.total_pages
    if total_pages is not None and (start_page > total_pages or end_page > total_pages):
        raise ValidationError(
            RejectionReason.EXCEEDS_BOOK_LENGTH,
            f"Pages {start_page}-{end_page} are outside the book's {total_pages} pages",
        )

    session_pages = end_page - start_page + 1
    if session_pages <= 0:
        raise ValidationError(
            RejectionReason.ZERO_LENGTH_SESSION,
            "A reading session must cover at least one page",
        )

    projected_total = book.pages_read + session_pages
    if total_pages is not None and projected_total > total_pages and book.pages_read < total_pages:
        remaining = total_pages - book.pages_read
        raise ValidationError(
            RejectionReason.WOULD_EXCEED_REMAINING_PAGES,
            f"Total pages read ({projected_total}) cannot exceed the book's {total_pages} pages; "
            f"at most {remaining} more pages can be logged",
        )

    return ValidatedSession(
        start_page=start_page,
        end_page=end_page,
        session_pages=session_pages,
        takeaway=submission.takeaway or "",
        date=submission.date,
    )

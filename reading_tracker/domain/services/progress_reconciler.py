"""Reconciliation of reading sessions into cumulative book progress."""

from datetime import datetime
from typing import Optional

from ..entities.book import Book, BookProgressUpdate, BookStatus, utc_now
from ..entities.reading_session import ReadingSession, ReconciliationResult
from ..entities.session_submission import ValidatedSession


def clamp_pages_read(pages_read: int, total_pages: Optional[int]) -> int:
    """Clamp a cumulative page count to the book's declared length."""
    if total_pages is None:
        return pages_read
    return min(pages_read, total_pages)


def derive_status(pages_read: int, total_pages: Optional[int], current: BookStatus) -> BookStatus:
    """Derive the lifecycle status implied by a book's progress.

    A finished book stays finished. Otherwise reaching the declared length
    finishes the book, any progress means it is being read, and no
    progress leaves the current status alone.
    """
    if current == BookStatus.FINISHED:
        return BookStatus.FINISHED
    if total_pages is not None and pages_read >= total_pages:
        return BookStatus.FINISHED
    if pages_read > 0:
        return BookStatus.READING
    return current


def reconcile(book: Book, validated: ValidatedSession, now: Optional[datetime] = None) -> ReconciliationResult:
    """Compute the book update and session record for a validated session.

    The session's `resulting_pages_read` is the clamped post-session total
    and is stored as-is; it is never recomputed from the ledger.

    Args:
        book: Snapshot of the book before the session.
        validated: Output of `validate_session` for this book.
        now: Commit time, defaults to the current UTC time.

    Returns:
        ReconciliationResult: The session record and the book progress update.
    """
    now = now or utc_now()

    raw_total = book.pages_read + validated.session_pages
    final_pages_read = clamp_pages_read(raw_total, book.total_pages)
    status = derive_status(final_pages_read, book.total_pages, book.status)

    session = ReadingSession(
        book_id=book.id,
        user_id=book.user_id,
        start_page=validated.start_page,
        end_page=validated.end_page,
        pages_read_this_session=validated.session_pages,
        takeaway=validated.takeaway,
        date=validated.date or now,
        resulting_pages_read=final_pages_read,
        committed_at=now,
    )
    progress = BookProgressUpdate(pages_read=final_pages_read, status=status, updated_at=now)

    return ReconciliationResult(session=session, progress=progress)

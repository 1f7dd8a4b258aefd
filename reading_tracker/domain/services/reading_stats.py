"""Simple aggregation of a book's reading session history."""

from typing import Iterable

from ..entities.book import Book
from ..entities.reading_session import ReadingSession
from ..entities.reading_stats import ReadingStats


def sessions_for_display(sessions: Iterable[ReadingSession]) -> list[ReadingSession]:
    """Order sessions newest first by session date, then by commit time."""
    return sorted(sessions, key=lambda s: (s.date, s.committed_at), reverse=True)


def summarize_sessions(book: Book, sessions: Iterable[ReadingSession]) -> ReadingStats:
    """Aggregate a book's sessions into reading statistics."""
    sessions = list(sessions)
    pages_logged = sum(s.pages_read_this_session for s in sessions)
    dates = [s.date for s in sessions]

    return ReadingStats(
        book_id=book.id,
        session_count=len(sessions),
        pages_logged=pages_logged,
        average_pages_per_session=round(pages_logged / len(sessions), 1) if sessions else 0.0,
        pages_read=book.pages_read,
        total_pages=book.total_pages,
        remaining_pages=book.remaining_pages,
        progress_percent=book.progress_percent,
        first_session_date=min(dates) if dates else None,
        last_session_date=max(dates) if dates else None,
    )

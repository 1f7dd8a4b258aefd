"""Tests for reading statistics."""

from datetime import datetime, timedelta, timezone

from reading_tracker.domain.entities.book import Book, BookStatus
from reading_tracker.domain.entities.reading_session import ReadingSession
from reading_tracker.domain.services.reading_stats import sessions_for_display, summarize_sessions

DAY = datetime(2026, 4, 1, 21, 0, tzinfo=timezone.utc)


def make_session(session_id, start_page, end_page, date, committed_at=None):
    return ReadingSession(
        id=session_id,
        book_id="book-1",
        user_id="uid-1",
        start_page=start_page,
        end_page=end_page,
        pages_read_this_session=end_page - start_page + 1,
        date=date,
        resulting_pages_read=end_page,
        committed_at=committed_at or date,
    )


def test_sessions_for_display_orders_by_date_then_commit():
    a = make_session("a", 1, 10, DAY, committed_at=DAY)
    b = make_session("b", 11, 20, DAY, committed_at=DAY + timedelta(minutes=1))
    c = make_session("c", 21, 30, DAY + timedelta(days=1))

    assert [s.id for s in sessions_for_display([a, b, c])] == ["c", "b", "a"]


def test_summarize_sessions():
    book = Book(
        id="book-1",
        user_id="uid-1",
        title="Dune",
        author="Frank Herbert",
        category="Sci-Fi",
        cover_url="https://picsum.photos/seed/Dune/300/450",
        status=BookStatus.READING,
        total_pages=300,
        pages_read=70,
    )
    sessions = [
        make_session("a", 1, 30, DAY),
        make_session("b", 31, 50, DAY + timedelta(days=2)),
        make_session("c", 51, 70, DAY + timedelta(days=1)),
    ]

    stats = summarize_sessions(book, sessions)

    assert stats.session_count == 3
    assert stats.pages_logged == 70
    assert stats.average_pages_per_session == 23.3
    assert stats.progress_percent == 23
    assert stats.remaining_pages == 230
    assert stats.first_session_date == DAY
    assert stats.last_session_date == DAY + timedelta(days=2)


def test_summarize_without_sessions():
    book = Book(
        user_id="uid-1",
        title="Emma",
        author="Jane Austen",
        category="Romance",
        cover_url="https://picsum.photos/seed/Emma/300/450",
    )

    stats = summarize_sessions(book, [])

    assert stats.session_count == 0
    assert stats.average_pages_per_session == 0.0
    assert stats.total_pages is None
    assert stats.first_session_date is None

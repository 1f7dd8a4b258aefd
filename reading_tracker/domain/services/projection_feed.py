"""Live projection feed: filtered and sorted views of a user's books and a book's sessions."""

import logging
from contextlib import aclosing
from typing import AsyncIterator, Iterable, Optional

from ..entities.book import Book
from ..entities.book_query import ALL, BookOrder, BookQuery
from ..entities.reading_session import ReadingSession
from ..interfaces.book_repository import BookRepository
from .reading_stats import sessions_for_display

logger = logging.getLogger(__name__)


def filter_books(
    books: Iterable[Book],
    search: Optional[str] = None,
    category: str = ALL,
    status: str = ALL,
) -> list[Book]:
    """Filter books by search term, category and status.

    Search is a case-insensitive substring match on title or author.
    Category and status match exactly; "All" disables either filter.
    """
    result = list(books)

    term = (search or "").strip().casefold()
    if term:
        result = [
            book for book in result
            if term in book.title.casefold() or term in book.author.casefold()
        ]

    if category and category != ALL:
        result = [book for book in result if book.category == category]

    if status and status != ALL:
        result = [book for book in result if book.status.value == status]

    return result


def sort_books(books: Iterable[Book], order: BookOrder = BookOrder.UPDATED_DESC) -> list[Book]:
    """Sort books, most recently updated first by default."""
    if order == BookOrder.TITLE_ASC:
        return sorted(books, key=lambda book: (book.title.casefold(), book.author.casefold()))
    return sorted(books, key=lambda book: (book.updated_at, book.id), reverse=True)


def project(books: Iterable[Book], query: BookQuery) -> list[Book]:
    """Apply a full query (filters, then ordering) to a book collection."""
    filtered = filter_books(books, query.search, query.category, query.status)
    return sort_books(filtered, query.order)


class ProjectionFeed:
    """
    Re-derives filtered views from the repository's push feed.

    Every emission of the underlying subscription is the owner's full
    collection; the feed re-applies the query to it and re-emits the
    whole view rather than deltas.
    """

    def __init__(self, repository: BookRepository):
        self.repository = repository

    async def watch(self, user_id: str, query: Optional[BookQuery] = None) -> AsyncIterator[tuple[list[Book], int]]:
        """
        Yield `(view, total)` pairs for every change to the owner's books.

        Args:
            user_id: The owning user.
            query: Filter and sort criteria, defaults to all books by recency.

        Yields:
            The projected view and the unfiltered collection size.
        """
        query = query or BookQuery()
        logger.info(f"Projection feed opened for {user_id}")
        try:
            async with aclosing(self.repository.subscribe(user_id)) as snapshots:
                async for books in snapshots:
                    yield project(books, query), len(books)
        finally:
            logger.info(f"Projection feed closed for {user_id}")

    async def watch_sessions(self, user_id: str, book_id: str) -> AsyncIterator[list[ReadingSession]]:
        """Yield a book's sessions, newest first, after every commit to it.

        Raises:
            BookNotFoundError: If the book does not exist for this owner.
        """
        await self.repository.get_book(user_id, book_id)
        logger.info(f"Session feed opened for {user_id}/{book_id}")
        try:
            async with aclosing(self.repository.subscribe_sessions(user_id, book_id)) as snapshots:
                async for sessions in snapshots:
                    yield sessions_for_display(sessions)
        finally:
            logger.info(f"Session feed closed for {user_id}/{book_id}")

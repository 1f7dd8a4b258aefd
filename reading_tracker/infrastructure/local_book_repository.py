"""Local in-memory implementation of BookRepository."""

import asyncio
from typing import AsyncIterator, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError as ModelValidationError

from ..domain.entities.book import Book, BookProgressUpdate, BookRef
from ..domain.entities.errors import BookNotFoundError, ConcurrentModificationError, StoreError
from ..domain.entities.reading_session import ReadingSession
from ..domain.interfaces.book_repository import BookRepository
from .change_broadcaster import ChangeBroadcaster

BookKey = Tuple[str, str]
Books = Dict[BookKey, Book]
Sessions = Dict[BookKey, List[ReadingSession]]
Write = Callable[[Books, Sessions], None]


class LocalBookRepository(BookRepository):
    """Local in-memory implementation of the BookRepository protocol.

    Stores books and sessions in dictionaries keyed by (user_id, book_id)
    for testing and development purposes. Multi-document commits are
    applied to a staged copy of the state and swapped in only when every
    write succeeded.
    """

    def __init__(self, broadcaster: Optional[ChangeBroadcaster] = None):
        """Initialize the local repository with empty collections."""
        self._books: Books = {}
        self._sessions: Sessions = {}
        self._lock = asyncio.Lock()
        self._broadcaster = broadcaster or ChangeBroadcaster()

    async def create_book(self, book: Book) -> Book:
        """Insert a new book into the in-memory dictionary.

        Args:
            book: The book entity to insert.

        Returns:
            Book: The stored book.

        Raises:
            StoreError: If a book with the same id already exists.
        """
        async with self._lock:
            key = (book.user_id, book.id)
            if key in self._books:
                raise StoreError(f"Book with id {book.id} already exists")
            self._books[key] = book
        self._broadcaster.publish(book.user_id)
        return book

    async def get_book(self, user_id: str, book_id: str) -> Book:
        """Retrieve a book by owner and ID.

        Raises:
            BookNotFoundError: If the book is not found.
        """
        return self._require_book(self._books, user_id, book_id)

    async def update_book(self, book: Book, expected_version: Optional[int] = None) -> Book:
        """Replace an existing book and bump its version.

        Raises:
            BookNotFoundError: If the book is not found.
            ConcurrentModificationError: If `expected_version` does not match.
        """
        async with self._lock:
            current = self._require_book(self._books, book.user_id, book.id)
            self._check_expected(current, expected_version)
            stored = book.with_changes(version=current.version + 1)
            self._books[(book.user_id, book.id)] = stored
        self._broadcaster.publish(book.user_id)
        return stored

    async def list_books(self, user_id: str) -> list[Book]:
        """List all books of a user, most recently updated first."""
        books = [book for (owner, _), book in self._books.items() if owner == user_id]
        return sorted(books, key=lambda book: book.updated_at, reverse=True)

    async def list_sessions(self, user_id: str, book_id: str) -> list[ReadingSession]:
        """List a book's sessions in commit order."""
        return list(self._sessions.get((user_id, book_id), []))

    async def commit_session(
        self,
        ref: BookRef,
        session: ReadingSession,
        progress: BookProgressUpdate,
        expected_version: Optional[int] = None,
    ) -> None:
        """Append a session and update the book's progress atomically."""
        async with self._lock:
            current = self._require_book(self._books, ref.user_id, ref.book_id)
            self._check_expected(current, expected_version)
            self._apply_batch([
                lambda books, sessions: self._insert_session(books, sessions, ref, session),
                lambda books, sessions: self._update_book_progress(books, sessions, ref, progress),
            ])
        self._broadcaster.publish(ref.user_id)
        self._broadcaster.publish(ref)

    async def subscribe(self, user_id: str) -> AsyncIterator[list[Book]]:
        """Yield the user's books now and after every change."""
        async with self._broadcaster.listen(user_id) as signals:
            yield await self.list_books(user_id)
            async for _ in signals:
                yield await self.list_books(user_id)

    async def subscribe_sessions(self, user_id: str, book_id: str) -> AsyncIterator[list[ReadingSession]]:
        """Yield a book's sessions now and after every commit."""
        async with self._broadcaster.listen(BookRef(user_id, book_id)) as signals:
            yield await self.list_sessions(user_id, book_id)
            async for _ in signals:
                yield await self.list_sessions(user_id, book_id)

    def clear(self) -> None:
        """Clear all books and sessions."""
        self._books.clear()
        self._sessions.clear()

    def _apply_batch(self, writes: List[Write]) -> None:
        books: Books = dict(self._books)
        sessions: Sessions = {key: list(entries) for key, entries in self._sessions.items()}
        for write in writes:
            write(books, sessions)
        self._books, self._sessions = books, sessions

    def _insert_session(self, books: Books, sessions: Sessions, ref: BookRef, session: ReadingSession) -> None:
        sessions.setdefault((ref.user_id, ref.book_id), []).append(session)

    def _update_book_progress(self, books: Books, sessions: Sessions, ref: BookRef, progress: BookProgressUpdate) -> None:
        book = self._require_book(books, ref.user_id, ref.book_id)
        try:
            updated = book.with_changes(**progress.model_dump(), version=book.version + 1)
        except ModelValidationError as e:
            raise ConcurrentModificationError(
                f"Progress {progress.pages_read} does not fit book {book.id} ({book.total_pages} pages)"
            ) from e
        books[(ref.user_id, ref.book_id)] = updated

    @staticmethod
    def _require_book(books: Books, user_id: str, book_id: str) -> Book:
        try:
            return books[(user_id, book_id)]
        except KeyError:
            raise BookNotFoundError(book_id) from None

    @staticmethod
    def _check_expected(book: Book, expected_version: Optional[int]) -> None:
        if expected_version is not None and book.version != expected_version:
            raise ConcurrentModificationError(
                f"Book {book.id} is at version {book.version}, expected {expected_version}"
            )

"""Book repository interface."""

from typing import AsyncIterator, Optional, Protocol, runtime_checkable

from ..entities.book import Book, BookProgressUpdate, BookRef
from ..entities.reading_session import ReadingSession


@runtime_checkable
class BookRepository(Protocol):
    """Protocol defining the document store for books and their sessions.

    All data lives under the owning user's subtree; implementations never
    read or write across tenants. Write failures are reported as
    `StoreError` subclasses.
    """

    async def create_book(self, book: Book) -> Book:
        """Insert a new book.

        Args:
            book: The book entity to insert.

        Returns:
            Book: The stored book.
        """
        ...

    async def get_book(self, user_id: str, book_id: str) -> Book:
        """Retrieve a single book.

        Args:
            user_id: The owning user.
            book_id: The book identifier.

        Returns:
            Book: The book entity.

        Raises:
            BookNotFoundError: If the book does not exist for this owner.
        """
        ...

    async def update_book(self, book: Book, expected_version: Optional[int] = None) -> Book:
        """Replace an existing book's fields.

        Args:
            book: The updated book entity.
            expected_version: When given, only write if the stored
                `version` still equals this value.

        Returns:
            Book: The stored book with its bumped `version`.

        Raises:
            BookNotFoundError: If the book does not exist.
            ConcurrentModificationError: If the conditional check fails.
        """
        ...

    async def list_books(self, user_id: str) -> list[Book]:
        """List all books owned by a user, most recently updated first."""
        ...

    async def list_sessions(self, user_id: str, book_id: str) -> list[ReadingSession]:
        """List a book's reading sessions in commit order."""
        ...

    async def commit_session(
        self,
        ref: BookRef,
        session: ReadingSession,
        progress: BookProgressUpdate,
        expected_version: Optional[int] = None,
    ) -> None:
        """Atomically insert a session and apply the book progress update.

        Either both writes become visible or neither does. The book's
        `version` is bumped, and the write is refused when the new
        `pages_read` would exceed the stored `total_pages`.

        Args:
            ref: The book the session belongs to.
            session: The session record to append.
            progress: The book fields to update.
            expected_version: Optional compare-and-swap guard on the
                book's `version`.

        Raises:
            BookNotFoundError: If the book does not exist.
            ConcurrentModificationError: If the conditional check fails or
                the progress no longer fits the stored book.
            StoreError: On any other store failure.
        """
        ...

    def subscribe(self, user_id: str) -> AsyncIterator[list[Book]]:
        """Push feed of the owner's full book collection.

        Emits once on subscription and again after every change.
        """
        ...

    def subscribe_sessions(self, user_id: str, book_id: str) -> AsyncIterator[list[ReadingSession]]:
        """Push feed of one book's sessions in commit order.

        Emits once on subscription and again after every committed session.
        """
        ...

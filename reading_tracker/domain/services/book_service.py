"""Book service for adding, editing and listing books."""

import logging
import uuid
from typing import Optional

from pydantic import ValidationError as ModelValidationError

from ..entities.book import Book, BookChanges, BookDraft, utc_now
from ..entities.book_query import BookQuery
from ..entities.cover import CoverResolution, CoverUpload
from ..entities.errors import CommitError, ConcurrentModificationError, StoreError
from ..interfaces.book_repository import BookRepository
from .cover_policy import CoverPolicy
from .progress_reconciler import clamp_pages_read, derive_status
from .projection_feed import project

logger = logging.getLogger(__name__)


class BookService:
    """
    Book create/edit flows.

    Covers go through the cover policy. A stale blob-hosted cover is only
    deleted after the book write succeeds; if the write fails, a cover
    uploaded for it is deleted instead.
    """

    def __init__(self, repository: BookRepository, cover_policy: CoverPolicy):
        self.repository = repository
        self.cover_policy = cover_policy

    async def add_book(self, user_id: str, draft: BookDraft, upload: Optional[CoverUpload] = None) -> Book:
        """
        Add a book to the user's library.

        Args:
            user_id: The owning user.
            draft: Book metadata.
            upload: Optional cover image.

        Returns:
            Book: The stored book.

        Raises:
            PolicyError: If the cover input is rejected.
            CommitError: If the store write fails.
        """
        book_id = str(uuid.uuid4())
        cover = await self.cover_policy.resolve(
            owner_id=user_id,
            title=draft.title,
            upload=upload,
            url_input=draft.cover_url,
            fallback_seed=book_id,
        )

        now = utc_now()
        try:
            book = Book(
                id=book_id,
                user_id=user_id,
                title=draft.title,
                author=draft.author,
                category=draft.category,
                isbn=draft.isbn or None,
                description=draft.description or None,
                cover_url=cover.url,
                status=draft.status,
                total_pages=draft.total_pages,
                pages_read=0,
                created_at=now,
                updated_at=now,
            )
            stored = await self.repository.create_book(book)
        except ModelValidationError:
            await self._discard_upload(cover)
            raise
        except StoreError as e:
            await self._discard_upload(cover)
            logger.warning(f"Failed to add book for {user_id}: {e}")
            raise CommitError("Failed to add book. Please try again.", cause=e) from e

        logger.info(f"Book {stored.id} added for {user_id}")
        return stored

    async def edit_book(
        self,
        user_id: str,
        book_id: str,
        changes: BookChanges,
        upload: Optional[CoverUpload] = None,
    ) -> Book:
        """
        Apply a partial metadata/cover edit to a book.

        Shrinking `total_pages` below the current progress clamps
        `pages_read`, and the requested status is normalized against the
        progress so the book invariants hold.

        Raises:
            BookNotFoundError: If the book does not exist.
            PolicyError: If the cover input is rejected.
            CommitError: If the write fails or progress changed concurrently.
        """
        book = await self.repository.get_book(user_id, book_id)
        fields = changes.model_dump(exclude_unset=True)
        url_input = fields.pop("cover_url", None)

        # Required fields cannot be cleared by an edit.
        for name in ("title", "author", "category", "status"):
            if name in fields and fields[name] is None:
                del fields[name]

        title = fields.get("title", book.title)
        cover = await self.cover_policy.resolve(
            owner_id=user_id,
            title=title,
            current_url=book.cover_url,
            upload=upload,
            url_input=url_input,
            fallback_seed=book.id,
        )

        total_pages = fields.get("total_pages", book.total_pages)
        pages_read = clamp_pages_read(book.pages_read, total_pages)
        status = derive_status(pages_read, total_pages, fields.get("status", book.status))

        try:
            updated = book.with_changes(
                **fields,
                cover_url=cover.url,
                pages_read=pages_read,
                status=status,
                updated_at=utc_now(),
            )
            stored = await self.repository.update_book(updated, expected_version=book.version)
        except ModelValidationError:
            await self._discard_upload(cover)
            raise
        except ConcurrentModificationError as e:
            await self._discard_upload(cover)
            raise CommitError("The book changed while saving. Please try again.", conflict=True, cause=e) from e
        except StoreError as e:
            await self._discard_upload(cover)
            logger.warning(f"Failed to edit book {book_id}: {e}")
            raise CommitError("Failed to update book. Please try again.", cause=e) from e

        await self.cover_policy.cleanup(cover.stale_url)
        logger.info(f"Book {book_id} updated for {user_id}")
        return stored

    async def get_book(self, user_id: str, book_id: str) -> Book:
        return await self.repository.get_book(user_id, book_id)

    async def list_books(self, user_id: str, query: Optional[BookQuery] = None) -> list[Book]:
        """List the user's books with the query's filters and ordering applied."""
        books = await self.repository.list_books(user_id)
        return project(books, query or BookQuery())

    async def _discard_upload(self, cover: CoverResolution) -> None:
        if cover.uploaded:
            await self.cover_policy.cleanup(cover.url)

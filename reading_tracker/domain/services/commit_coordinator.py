"""Atomic commit of a reading session together with its book update."""

import logging
from typing import Optional

from ..entities.book import BookProgressUpdate, BookRef
from ..entities.errors import (
    BookNotFoundError,
    CommitError,
    ConcurrentModificationError,
    StoreError,
)
from ..entities.reading_session import ReadingSession
from ..interfaces.book_repository import BookRepository

logger = logging.getLogger(__name__)


class CommitCoordinator:
    """
    Writes a session record and the book's progress fields as one unit.

    The repository's `commit_session` carries the atomicity guarantee; this
    class turns every store failure into a `CommitError` so callers see a
    single failure type with no partial effect. It never retries and is
    not idempotent: each successful call appends one session.
    """

    def __init__(self, repository: BookRepository):
        self.repository = repository

    async def commit(
        self,
        ref: BookRef,
        session: ReadingSession,
        progress: BookProgressUpdate,
        expected_version: Optional[int] = None,
    ) -> None:
        """
        Commit a session and its book update atomically.

        Args:
            ref: The book the session belongs to.
            session: The session record from the reconciler.
            progress: The book fields from the reconciler.
            expected_version: When given, the write only applies if the
                stored book `version` still has this value.

        Raises:
            CommitError: If the store rejected or failed the write.
        """
        try:
            await self.repository.commit_session(ref, session, progress, expected_version)
        except ConcurrentModificationError as e:
            logger.warning(f"Commit conflict for book {ref.book_id}: {e}")
            raise CommitError("The book changed while saving. Please try again.", conflict=True, cause=e) from e
        except (StoreError, BookNotFoundError) as e:
            logger.warning(f"Commit failed for book {ref.book_id}: {e}")
            raise CommitError("Failed to save progress. Please try again.", cause=e) from e

        logger.info(
            f"Committed session {session.id} for book {ref.book_id}: "
            f"pages_read={progress.pages_read}, status={progress.status.value}"
        )

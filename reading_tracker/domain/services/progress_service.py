"""Progress service: the validate → reconcile → commit pipeline."""

import logging

from ..entities.errors import BookNotFoundError, CommitError
from ..entities.reading_session import ReadingSession
from ..entities.reading_stats import ReadingStats
from ..entities.session_submission import SessionSubmission
from ..interfaces.book_repository import BookRepository
from .commit_coordinator import CommitCoordinator
from .progress_reconciler import reconcile
from .reading_stats import sessions_for_display, summarize_sessions
from .session_validator import validate_session

logger = logging.getLogger(__name__)


class ProgressService:
    """
    Logs reading sessions against a user's books.

    Every run reads a fresh book snapshot, validates and reconciles the
    session against it and hands the result to the commit coordinator.
    With optimistic concurrency enabled the commit is conditional on the
    snapshot's `version`, so any write to the book in between (another
    session, an edit that changes `total_pages`) is detected and the whole
    pipeline is re-run against the new snapshot, up to
    `max_conflict_retries` times.
    """

    def __init__(
        self,
        repository: BookRepository,
        coordinator: CommitCoordinator,
        optimistic_concurrency: bool = True,
        max_conflict_retries: int = 3,
    ):
        self.repository = repository
        self.coordinator = coordinator
        self.optimistic_concurrency = optimistic_concurrency
        self.max_conflict_retries = max_conflict_retries

    async def log_session(self, user_id: str, book_id: str, submission: SessionSubmission) -> ReadingSession:
        """
        Validate, reconcile and commit a reading session.

        Args:
            user_id: The owning user.
            book_id: The book to log against.
            submission: Raw session input.

        Returns:
            ReadingSession: The committed session record.

        Raises:
            BookNotFoundError: If the book does not exist.
            ValidationError: If the session is rejected.
            CommitError: If the commit failed or kept conflicting.
        """
        attempt = 0
        while True:
            book = await self.repository.get_book(user_id, book_id)
            validated = validate_session(submission, book)
            result = reconcile(book, validated)

            expected = book.version if self.optimistic_concurrency else None
            try:
                await self.coordinator.commit(book.ref, result.session, result.progress, expected)
            except CommitError as e:
                if isinstance(e.cause, BookNotFoundError):
                    raise e.cause from None
                if not e.conflict or attempt >= self.max_conflict_retries:
                    raise
                attempt += 1
                logger.info(f"Retrying session for book {book_id} after conflict (attempt {attempt})")
                continue

            return result.session

    async def list_sessions(self, user_id: str, book_id: str) -> list[ReadingSession]:
        """List a book's sessions newest first."""
        await self.repository.get_book(user_id, book_id)
        sessions = await self.repository.list_sessions(user_id, book_id)
        return sessions_for_display(sessions)

    async def get_stats(self, user_id: str, book_id: str) -> ReadingStats:
        """Aggregate a book's session history."""
        book = await self.repository.get_book(user_id, book_id)
        sessions = await self.repository.list_sessions(user_id, book_id)
        return summarize_sessions(book, sessions)

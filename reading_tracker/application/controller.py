"""Reading Tracker Controller for handling business logic and coordination."""

import logging
from typing import Optional

from fastapi import WebSocket

from ..domain.entities import (
    Book,
    BookChanges,
    BookDraft,
    BookQuery,
    CoverUpload,
    Identity,
    ReadingSession,
    ReadingStats,
    SessionSubmission,
)
from ..domain.entities.errors import StoreError
from ..domain.interfaces.book_repository import BookRepository
from ..domain.interfaces.cover_storage import CoverStorage
from ..domain.services import BookService, CommitCoordinator, CoverPolicy, ProgressService, ProjectionFeed
from ..domain.services.cover_policy import DEFAULT_MAX_COVER_BYTES, DEFAULT_PLACEHOLDER_BASE_URL
from ..infrastructure.local_cover_storage import LocalCoverStorage
from .auth import TokenVerifier
from .websocket_handler import BookFeedWebSocketHandler, SessionFeedWebSocketHandler

logger = logging.getLogger(__name__)


class ReadingTrackerController:
    """
    Controller for coordinating reading tracker operations.

    This controller is injected with the document store, the cover store
    and the token verifier, wires up the domain services and handles the
    business logic for each endpoint, keeping the API layer thin.
    """

    def __init__(
        self,
        repository: BookRepository,
        cover_storage: CoverStorage,
        token_verifier: TokenVerifier,
        placeholder_base_url: str = DEFAULT_PLACEHOLDER_BASE_URL,
        max_cover_bytes: int = DEFAULT_MAX_COVER_BYTES,
        optimistic_concurrency: bool = True,
        commit_conflict_retries: int = 3,
    ):
        """
        Initialize the controller with injected dependencies.

        Args:
            repository: Document store for books and sessions
            cover_storage: Blob store for uploaded covers
            token_verifier: Verifier for identity-provider tokens
            placeholder_base_url: Base URL of the placeholder image service
            max_cover_bytes: Largest accepted cover upload
            optimistic_concurrency: Make session commits conditional on the
                progress they were computed from
            commit_conflict_retries: Pipeline re-runs after a conflict
        """
        self.repository = repository
        self.cover_storage = cover_storage
        self.token_verifier = token_verifier

        self.cover_policy = CoverPolicy(
            storage=cover_storage,
            placeholder_base_url=placeholder_base_url,
            max_cover_bytes=max_cover_bytes,
        )
        self.book_service = BookService(repository=repository, cover_policy=self.cover_policy)
        self.progress_service = ProgressService(
            repository=repository,
            coordinator=CommitCoordinator(repository),
            optimistic_concurrency=optimistic_concurrency,
            max_conflict_retries=commit_conflict_retries,
        )
        self.feed = ProjectionFeed(repository)

        logger.info("ReadingTrackerController initialized with providers")

    def authenticate(self, token: Optional[str]) -> Identity:
        return self.token_verifier.verify(token)

    async def handle_websocket_connection(
        self,
        websocket: WebSocket,
        identity: Identity,
        query: Optional[BookQuery] = None,
    ) -> None:
        logger.info(f"Handling book feed connection for {identity.uid} from {websocket.client}")
        handler = BookFeedWebSocketHandler(feed=self.feed, user_id=identity.uid, query=query)
        await handler.handle_websocket(websocket)

    async def handle_session_feed_connection(self, websocket: WebSocket, identity: Identity, book_id: str) -> None:
        logger.info(f"Handling session feed connection for {identity.uid}/{book_id} from {websocket.client}")
        handler = SessionFeedWebSocketHandler(feed=self.feed, user_id=identity.uid, book_id=book_id)
        await handler.handle_websocket(websocket)

    def get_health_status(self) -> dict:
        """
        Get application health status.

        Returns:
            Dict containing health status information
        """
        return {
            "status": "healthy",
            "providers": {
                "book_repository": type(self.repository).__name__,
                "cover_storage": type(self.cover_storage).__name__,
            },
        }

    async def list_books(self, identity: Identity, query: Optional[BookQuery] = None) -> list[Book]:
        return await self.book_service.list_books(identity.uid, query)

    async def get_book(self, identity: Identity, book_id: str) -> Book:
        return await self.book_service.get_book(identity.uid, book_id)

    async def add_book(self, identity: Identity, draft: BookDraft, upload: Optional[CoverUpload] = None) -> Book:
        return await self.book_service.add_book(identity.uid, draft, upload)

    async def edit_book(
        self,
        identity: Identity,
        book_id: str,
        changes: BookChanges,
        upload: Optional[CoverUpload] = None,
    ) -> Book:
        return await self.book_service.edit_book(identity.uid, book_id, changes, upload)

    async def log_session(self, identity: Identity, book_id: str, submission: SessionSubmission) -> ReadingSession:
        return await self.progress_service.log_session(identity.uid, book_id, submission)

    async def list_sessions(self, identity: Identity, book_id: str) -> list[ReadingSession]:
        return await self.progress_service.list_sessions(identity.uid, book_id)

    async def get_stats(self, identity: Identity, book_id: str) -> ReadingStats:
        return await self.progress_service.get_stats(identity.uid, book_id)

    def get_cover(self, owner_id: str, key: str) -> tuple[bytes, str]:
        """
        Get a locally hosted cover image.

        Args:
            owner_id: The uid segment of the cover path.
            key: The object name under the owner's prefix.

        Returns:
            The image bytes and their content type.

        Raises:
            StoreError: If covers are not hosted locally or the key is unknown.
        """
        if not isinstance(self.cover_storage, LocalCoverStorage):
            raise StoreError("Covers are not served by this API")
        return self.cover_storage.get(f"covers/{owner_id}/{key}")

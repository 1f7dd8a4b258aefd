"""FastAPI application entry point."""

import logging
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile, WebSocket, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError as PayloadValidationError

from ..domain.entities import (
    ALL,
    Book,
    BookChanges,
    BookDraft,
    BookOrder,
    BookQuery,
    BookStatus,
    CoverUpload,
    Identity,
    ReadingSession,
    ReadingStats,
    SessionSubmission,
)
from ..domain.entities.errors import (
    AuthenticationError,
    BookNotFoundError,
    CommitError,
    PolicyError,
    StoreError,
    ValidationError,
)
from ..infrastructure import (
    ChangeBroadcaster,
    DynamoDBBookRepository,
    LocalBookRepository,
    LocalCoverStorage,
    S3CoverStorage,
)
from .auth import TokenVerifier
from .config import Settings, settings
from .controller import ReadingTrackerController

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

# Cleared values for PATCH /books/{id}; an empty cover_url asks for a placeholder.
CLEARABLE_FIELDS = {"cover_url": "", "isbn": None, "description": None, "total_pages": None}


def build_controller(config: Settings) -> ReadingTrackerController:
    """
    Wire the controller to the storage backend named in the settings.

    Args:
        config: Application settings.

    Returns:
        ReadingTrackerController: Controller backed by in-memory stores for
        "local" or DynamoDB and S3 for "aws".
    """
    broadcaster = ChangeBroadcaster()
    if config.storage_backend == "aws":
        repository = DynamoDBBookRepository(
            table_name=config.books_table_name,
            region_name=config.aws_region,
            broadcaster=broadcaster,
        )
        cover_storage = S3CoverStorage(bucket_name=config.covers_bucket_name, region_name=config.aws_region)
    else:
        repository = LocalBookRepository(broadcaster=broadcaster)
        cover_storage = LocalCoverStorage(base_url=config.public_base_url)

    return ReadingTrackerController(
        repository=repository,
        cover_storage=cover_storage,
        token_verifier=TokenVerifier(
            secret=config.jwt_secret,
            algorithm=config.jwt_algorithm,
            audience=config.jwt_audience,
        ),
        placeholder_base_url=config.placeholder_base_url,
        max_cover_bytes=config.max_cover_bytes,
        optimistic_concurrency=config.optimistic_concurrency,
        commit_conflict_retries=config.commit_conflict_retries,
    )


def get_controller(request: Request) -> ReadingTrackerController:
    return request.app.state.controller


def get_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    controller: ReadingTrackerController = Depends(get_controller),
) -> Identity:
    """Authenticate the caller from the Authorization header."""
    token = credentials.credentials if credentials else None
    return controller.authenticate(token)


async def _read_upload(cover: Optional[UploadFile]) -> Optional[CoverUpload]:
    if cover is None or not cover.filename:
        return None
    return CoverUpload(
        data=await cover.read(),
        filename=cover.filename,
        content_type=cover.content_type or "application/octet-stream",
    )


def _error_response(status_code: int, detail: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, **extra})


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors onto HTTP responses."""

    @app.exception_handler(ValidationError)
    async def session_rejected(request: Request, exc: ValidationError):
        logger.info(f"Session rejected ({exc.reason.value}): {exc}")
        return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc), reason=exc.reason.value)

    @app.exception_handler(PolicyError)
    async def cover_rejected(request: Request, exc: PolicyError):
        return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc))

    @app.exception_handler(PayloadValidationError)
    async def payload_rejected(request: Request, exc: PayloadValidationError):
        errors = exc.errors(include_url=False, include_context=False)
        return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, "Invalid book data", errors=jsonable_encoder(errors))

    @app.exception_handler(BookNotFoundError)
    async def book_not_found(request: Request, exc: BookNotFoundError):
        return _error_response(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(AuthenticationError)
    async def unauthenticated(request: Request, exc: AuthenticationError):
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": str(exc)},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(CommitError)
    async def commit_failed(request: Request, exc: CommitError):
        logger.warning(f"Commit failed: {exc}")
        return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc), conflict=exc.conflict)

    @app.exception_handler(StoreError)
    async def store_failed(request: Request, exc: StoreError):
        logger.error(f"Store error: {exc}", exc_info=exc)
        return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, "Storage is unavailable. Please try again.")


def register_routes(app: FastAPI) -> None:
    """Attach the HTTP and WebSocket endpoints."""

    @app.get("/health")
    async def health_check(controller: ReadingTrackerController = Depends(get_controller)):
        """Health check endpoint."""
        return controller.get_health_status()

    @app.get("/books", response_model=list[Book])
    async def list_books(
        search: Optional[str] = Query(None, description="Case-insensitive title/author search"),
        category: str = Query(ALL),
        status_filter: str = Query(ALL, alias="status"),
        order: BookOrder = Query(BookOrder.UPDATED_DESC),
        identity: Identity = Depends(get_identity),
        controller: ReadingTrackerController = Depends(get_controller),
    ):
        """List the caller's books, filtered and sorted."""
        query = BookQuery(search=search, category=category, status=status_filter, order=order)
        return await controller.list_books(identity, query)

    @app.post("/books", response_model=Book, status_code=status.HTTP_201_CREATED)
    async def add_book(
        title: str = Form(...),
        author: str = Form(...),
        category: str = Form(...),
        book_status: BookStatus = Form(BookStatus.WANT_TO_READ, alias="status"),
        total_pages: Optional[int] = Form(None),
        isbn: Optional[str] = Form(None),
        description: Optional[str] = Form(None),
        cover_url: Optional[str] = Form(None),
        cover: Optional[UploadFile] = File(None),
        identity: Identity = Depends(get_identity),
        controller: ReadingTrackerController = Depends(get_controller),
    ):
        """
        Add a book to the caller's library.

        The cover is taken from the uploaded file, else from `cover_url`,
        else a placeholder is generated from the title.
        """
        draft = BookDraft(
            title=title,
            author=author,
            category=category,
            status=book_status,
            total_pages=total_pages,
            isbn=isbn or None,
            description=description or None,
            cover_url=cover_url,
        )
        return await controller.add_book(identity, draft, await _read_upload(cover))

    @app.get("/books/{book_id}", response_model=Book)
    async def get_book(
        book_id: str,
        identity: Identity = Depends(get_identity),
        controller: ReadingTrackerController = Depends(get_controller),
    ):
        return await controller.get_book(identity, book_id)

    @app.patch("/books/{book_id}", response_model=Book)
    async def edit_book(
        book_id: str,
        title: Optional[str] = Form(None),
        author: Optional[str] = Form(None),
        category: Optional[str] = Form(None),
        book_status: Optional[BookStatus] = Form(None, alias="status"),
        total_pages: Optional[int] = Form(None),
        isbn: Optional[str] = Form(None),
        description: Optional[str] = Form(None),
        cover_url: Optional[str] = Form(None),
        clear: Optional[list[str]] = Form(None, description="Fields to clear: cover_url, isbn, description, total_pages"),
        cover: Optional[UploadFile] = File(None),
        identity: Identity = Depends(get_identity),
        controller: ReadingTrackerController = Depends(get_controller),
    ):
        """
        Edit a book's metadata and cover.

        Only submitted fields change. Optional fields named in `clear` are
        removed; a cleared cover falls back to a placeholder.
        """
        submitted = {
            "title": title,
            "author": author,
            "category": category,
            "status": book_status,
            "total_pages": total_pages,
            "isbn": isbn,
            "description": description,
            "cover_url": cover_url,
        }
        fields = {name: value for name, value in submitted.items() if value is not None}
        for name in clear or ():
            if name not in CLEARABLE_FIELDS:
                raise PolicyError(f"Field {name} cannot be cleared")
            fields[name] = CLEARABLE_FIELDS[name]

        changes = BookChanges.model_validate(fields)
        return await controller.edit_book(identity, book_id, changes, await _read_upload(cover))

    @app.get("/books/{book_id}/sessions", response_model=list[ReadingSession])
    async def list_sessions(
        book_id: str,
        identity: Identity = Depends(get_identity),
        controller: ReadingTrackerController = Depends(get_controller),
    ):
        """List a book's reading sessions, newest first."""
        return await controller.list_sessions(identity, book_id)

    @app.post("/books/{book_id}/sessions", response_model=ReadingSession, status_code=status.HTTP_201_CREATED)
    async def log_session(
        book_id: str,
        submission: SessionSubmission,
        identity: Identity = Depends(get_identity),
        controller: ReadingTrackerController = Depends(get_controller),
    ):
        """
        Log a reading session against a book.

        The session and the book's new progress are committed together;
        a rejected session returns 422 with a `reason`.
        """
        return await controller.log_session(identity, book_id, submission)

    @app.get("/books/{book_id}/stats", response_model=ReadingStats)
    async def get_stats(
        book_id: str,
        identity: Identity = Depends(get_identity),
        controller: ReadingTrackerController = Depends(get_controller),
    ):
        return await controller.get_stats(identity, book_id)

    @app.get("/covers/{owner_id}/{key}")
    async def get_cover(
        owner_id: str,
        key: str,
        controller: ReadingTrackerController = Depends(get_controller),
    ):
        """Serve a cover uploaded to the local cover storage."""
        try:
            data, content_type = controller.get_cover(owner_id, key)
        except StoreError:
            raise HTTPException(status_code=404, detail="Cover not found")
        return Response(content=data, media_type=content_type)

    @app.websocket("/ws/books")
    async def books_feed(
        websocket: WebSocket,
        token: Optional[str] = Query(None),
        search: Optional[str] = Query(None),
        category: str = Query(ALL),
        status_filter: str = Query(ALL, alias="status"),
        order: BookOrder = Query(BookOrder.UPDATED_DESC),
    ):
        """
        WebSocket endpoint for the live book view.

        Args:
            websocket: WebSocket connection
            token: Identity-provider JWT (query parameter)

        Connection lifecycle:
        1. Client connects with a valid token and optional initial criteria
        2. Server sends a books.snapshot immediately and after every change
        3. Client may send feed.query messages to change the criteria
        """
        controller: ReadingTrackerController = websocket.app.state.controller
        try:
            identity = controller.authenticate(token)
        except AuthenticationError as e:
            logger.warning(f"Rejected WebSocket connection: {e}")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        await websocket.accept()
        query = BookQuery(search=search, category=category, status=status_filter, order=order)
        await controller.handle_websocket_connection(websocket, identity, query)

    @app.websocket("/ws/books/{book_id}/sessions")
    async def sessions_feed(websocket: WebSocket, book_id: str, token: Optional[str] = Query(None)):
        """
        WebSocket endpoint for one book's live session history.

        Sends a sessions.snapshot, newest first, on connect and after every
        session committed to the book. Unknown books are refused like bad
        tokens.
        """
        controller: ReadingTrackerController = websocket.app.state.controller
        try:
            identity = controller.authenticate(token)
            await controller.get_book(identity, book_id)
        except (AuthenticationError, BookNotFoundError) as e:
            logger.warning(f"Rejected session feed connection: {e}")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        await websocket.accept()
        await controller.handle_session_feed_connection(websocket, identity, book_id)


def create_app(
    config: Optional[Settings] = None,
    controller: Optional[ReadingTrackerController] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        config: Settings to use, defaults to the environment settings.
        controller: Pre-built controller, built from `config` when omitted.

    Returns:
        FastAPI: The configured application.
    """
    config = config or settings
    app = FastAPI(
        title=config.app_name,
        version=config.app_version,
        debug=config.debug,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.controller = controller or build_controller(config)
    register_exception_handlers(app)
    register_routes(app)
    return app


app = create_app()

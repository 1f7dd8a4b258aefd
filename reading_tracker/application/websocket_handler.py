import asyncio
import logging
from contextlib import aclosing
from typing import Optional

from pydantic import BaseModel, ValidationError
from starlette.websockets import WebSocket, WebSocketDisconnect

from ..domain.entities import BookQuery, BooksSnapshot, ErrorCode, ErrorMessage, FeedQueryUpdate, SessionsSnapshot
from ..domain.services import ProjectionFeed

logger = logging.getLogger(__name__)


class FeedWebSocketHandler:
    """Runs a send loop and a receive loop until either side stops.

    Subclasses implement `_send_loop` and `_receive_loop`.
    """

    def __init__(self, feed: ProjectionFeed, user_id: str):
        self._feed = feed
        self._user_id = user_id

    async def handle_websocket(self, websocket: WebSocket) -> None:
        # websocket.accept() is called by the API endpoint before this
        send_task = asyncio.create_task(self._send_loop(websocket))
        receive_task = asyncio.create_task(self._receive_loop(websocket))
        done, pending = await asyncio.wait(
            {send_task, receive_task},
            return_when=asyncio.FIRST_EXCEPTION,
        )
        try:
            for task in done:
                exc = task.exception()
                if exc:
                    raise exc
        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected: {websocket.client}")
        except Exception as e:
            logger.error(f"WebSocket error: {e}", exc_info=True)
            await self._send_error(websocket, ErrorCode.INTERNAL_ERROR, "Live updates stopped")
        finally:
            for t in (send_task, receive_task):
                if not t.done():
                    t.cancel()
            await asyncio.gather(send_task, receive_task, return_exceptions=True)

            try:
                await websocket.close()
            except (RuntimeError, WebSocketDisconnect):
                # Already closed by the client.
                pass
            logger.info(f"WebSocket connection closed: {websocket.client}")

    async def _send_loop(self, websocket: WebSocket) -> None:
        raise NotImplementedError

    async def _receive_loop(self, websocket: WebSocket) -> None:
        raise NotImplementedError

    async def _send(self, websocket: WebSocket, message: BaseModel) -> None:
        await websocket.send_text(message.model_dump_json())

    async def _send_error(
        self,
        websocket: WebSocket,
        code: ErrorCode,
        message: str,
        detail: Optional[str] = None,
    ) -> None:
        try:
            await self._send(websocket, ErrorMessage(code=code, message=message, detail=detail))
        except (RuntimeError, WebSocketDisconnect):
            logger.debug(f"Could not send error to {websocket.client}")


class BookFeedWebSocketHandler(FeedWebSocketHandler):
    """Streams a user's live book view over a WebSocket.

    The send loop pushes a full `books.snapshot` whenever the user's books
    change. The receive loop accepts `feed.query` messages; a new query
    restarts the feed, which re-emits the view under the new criteria.
    """

    def __init__(self, feed: ProjectionFeed, user_id: str, query: Optional[BookQuery] = None):
        super().__init__(feed, user_id)
        self._query = query or BookQuery()
        self._query_changed = asyncio.Event()

    @property
    def query(self) -> BookQuery:
        return self._query

    async def _send_loop(self, websocket: WebSocket) -> None:
        while True:
            self._query_changed.clear()
            query = self._query
            async with aclosing(self._feed.watch(self._user_id, query)) as views:
                while not self._query_changed.is_set():
                    next_view = asyncio.ensure_future(anext(views))
                    query_changed = asyncio.ensure_future(self._query_changed.wait())
                    try:
                        await asyncio.wait(
                            {next_view, query_changed},
                            return_when=asyncio.FIRST_COMPLETED,
                        )
                    finally:
                        query_changed.cancel()
                        if not next_view.done():
                            # The generator must be idle before aclosing can close it.
                            next_view.cancel()
                            await asyncio.gather(next_view, return_exceptions=True)

                    if next_view.cancelled():
                        break
                    try:
                        books, total = next_view.result()
                    except StopAsyncIteration:
                        return
                    await self._send(websocket, BooksSnapshot(books=books, total=total))

    async def _receive_loop(self, websocket: WebSocket) -> None:
        """Receive query updates from the client."""
        while True:
            text = await websocket.receive_text()
            try:
                message = FeedQueryUpdate.model_validate_json(text)
            except ValidationError as e:
                logger.warning(f"Invalid feed message from {websocket.client}: {e}")
                await self._send_error(websocket, ErrorCode.INVALID_MESSAGE, "Expected a feed.query message", str(e))
                continue

            logger.info(f"Feed query for {self._user_id} changed to {message.query.model_dump()}")
            self._query = message.query
            self._query_changed.set()


class SessionFeedWebSocketHandler(FeedWebSocketHandler):
    """Streams one book's session history over a WebSocket.

    A `sessions.snapshot` is sent on connect and after every session
    committed to the book. The feed takes no client messages.
    """

    def __init__(self, feed: ProjectionFeed, user_id: str, book_id: str):
        super().__init__(feed, user_id)
        self._book_id = book_id

    async def _send_loop(self, websocket: WebSocket) -> None:
        async with aclosing(self._feed.watch_sessions(self._user_id, self._book_id)) as snapshots:
            async for sessions in snapshots:
                await self._send(websocket, SessionsSnapshot(book_id=self._book_id, sessions=sessions))

    async def _receive_loop(self, websocket: WebSocket) -> None:
        while True:
            await websocket.receive_text()
            await self._send_error(websocket, ErrorCode.INVALID_MESSAGE, "The session feed takes no messages")

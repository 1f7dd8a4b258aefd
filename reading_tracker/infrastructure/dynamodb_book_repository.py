"""DynamoDB implementation of BookRepository."""

import logging
from datetime import datetime
from typing import Any, AsyncIterator, Dict, Optional

import aioboto3
from boto3.dynamodb.conditions import Attr, Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from ..domain.entities.book import Book, BookProgressUpdate, BookRef, BookStatus
from ..domain.entities.errors import (
    BookNotFoundError,
    ConcurrentModificationError,
    PermissionDeniedError,
    StoreError,
    StoreUnavailableError,
)
from ..domain.entities.reading_session import ReadingSession
from ..domain.interfaces.book_repository import BookRepository
from .change_broadcaster import ChangeBroadcaster

logger = logging.getLogger(__name__)

_serializer = TypeSerializer()

_BOOK_OPTIONAL_FIELDS = ("isbn", "description", "total_pages")


class DynamoDBBookRepository(BookRepository):
    """DynamoDB repository for books and their reading sessions.

    Single-table layout partitioned by tenant:

    - book:    pk=USER#{user_id}  sk=BOOK#{book_id}
    - session: pk=USER#{user_id}  sk=BOOK#{book_id}#SESSION#{committed_at}#{session_id}

    Session sort keys order the ledger by commit time. A session and its
    book update are written with TransactWriteItems.
    """

    def __init__(
        self,
        table_name: str,
        region_name: str = "us-east-1",
        broadcaster: Optional[ChangeBroadcaster] = None,
    ):
        """Initialize the DynamoDB book repository.

        Args:
            table_name: The name of the DynamoDB table.
            region_name: AWS region name (default: us-east-1).
            broadcaster: Change notifier shared with subscribers in this process.
        """
        self.table_name = table_name
        self.region_name = region_name
        self._session = aioboto3.Session()
        self._broadcaster = broadcaster or ChangeBroadcaster()

    async def create_book(self, book: Book) -> Book:
        """Insert a new book, failing if the key already exists."""
        try:
            async with self._session.resource("dynamodb", region_name=self.region_name) as dynamodb:
                table = await dynamodb.Table(self.table_name)
                await table.put_item(
                    Item=self._book_to_item(book),
                    ConditionExpression=Attr("pk").not_exists(),
                )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                raise StoreError(f"Book with id {book.id} already exists") from e
            raise self._translate_error(e, book.id) from e
        except BotoCoreError as e:
            raise StoreUnavailableError(str(e)) from e

        self._broadcaster.publish(book.user_id)
        return book

    async def get_book(self, user_id: str, book_id: str) -> Book:
        """Retrieve a book by owner and ID.

        Raises:
            BookNotFoundError: If the book is not found.
        """
        try:
            async with self._session.resource("dynamodb", region_name=self.region_name) as dynamodb:
                table = await dynamodb.Table(self.table_name)
                response = await table.get_item(Key=self._book_key(user_id, book_id))
        except ClientError as e:
            raise self._translate_error(e, book_id) from e
        except BotoCoreError as e:
            raise StoreUnavailableError(str(e)) from e

        if "Item" not in response:
            raise BookNotFoundError(book_id)

        return self._item_to_book(response["Item"])

    async def update_book(self, book: Book, expected_version: Optional[int] = None) -> Book:
        """Replace an existing book, optionally guarded on `version`.

        The stored version is `book.version + 1`, so `book` should be a
        modified copy of the snapshot it was read as.
        """
        condition = Attr("pk").exists()
        if expected_version is not None:
            condition = condition & Attr("version").eq(expected_version)

        stored = book.with_changes(version=book.version + 1)
        try:
            async with self._session.resource("dynamodb", region_name=self.region_name) as dynamodb:
                table = await dynamodb.Table(self.table_name)
                await table.put_item(
                    Item=self._book_to_item(stored),
                    ConditionExpression=condition,
                    ReturnValuesOnConditionCheckFailure="ALL_OLD",
                )
        except ClientError as e:
            raise self._translate_error(e, book.id) from e
        except BotoCoreError as e:
            raise StoreUnavailableError(str(e)) from e

        self._broadcaster.publish(book.user_id)
        return stored

    async def list_books(self, user_id: str) -> list[Book]:
        """List all books of a user, most recently updated first."""
        items = await self._query(
            Key("pk").eq(self._partition(user_id)) & Key("sk").begins_with("BOOK#"),
            FilterExpression=Attr("entity").eq("book"),
        )
        books = [self._item_to_book(item) for item in items]
        return sorted(books, key=lambda book: book.updated_at, reverse=True)

    async def list_sessions(self, user_id: str, book_id: str) -> list[ReadingSession]:
        """List a book's sessions in commit order."""
        items = await self._query(
            Key("pk").eq(self._partition(user_id)) & Key("sk").begins_with(f"BOOK#{book_id}#SESSION#"),
        )
        return [self._item_to_session(item) for item in items]

    async def commit_session(
        self,
        ref: BookRef,
        session: ReadingSession,
        progress: BookProgressUpdate,
        expected_version: Optional[int] = None,
    ) -> None:
        """Write the session and the book progress in one transaction.

        The book update is conditional on the book existing and its stored
        `total_pages` still admitting the new `pages_read`.
        """
        condition = "attribute_exists(pk) AND (attribute_not_exists(total_pages) OR total_pages >= :pages_read)"
        values: Dict[str, Any] = {
            ":pages_read": progress.pages_read,
            ":status": progress.status.value,
            ":updated_at": progress.updated_at.isoformat(),
            ":zero": 0,
            ":one": 1,
        }
        if expected_version is not None:
            condition += " AND #version = :expected_version"
            values[":expected_version"] = expected_version

        transact_items = [
            {
                "Put": {
                    "TableName": self.table_name,
                    "Item": self._serialize(self._session_to_item(session)),
                    "ConditionExpression": "attribute_not_exists(pk)",
                }
            },
            {
                "Update": {
                    "TableName": self.table_name,
                    "Key": self._serialize(self._book_key(ref.user_id, ref.book_id)),
                    "UpdateExpression": (
                        "SET pages_read = :pages_read, #status = :status, updated_at = :updated_at, "
                        "#version = if_not_exists(#version, :zero) + :one"
                    ),
                    "ConditionExpression": condition,
                    "ReturnValuesOnConditionCheckFailure": "ALL_OLD",
                    "ExpressionAttributeNames": {"#status": "status", "#version": "version"},
                    "ExpressionAttributeValues": self._serialize(values),
                }
            },
        ]

        try:
            async with self._session.client("dynamodb", region_name=self.region_name) as client:
                await client.transact_write_items(TransactItems=transact_items)
        except ClientError as e:
            raise self._translate_error(e, ref.book_id) from e
        except BotoCoreError as e:
            raise StoreUnavailableError(str(e)) from e

        self._broadcaster.publish(ref.user_id)
        self._broadcaster.publish(ref)

    async def subscribe(self, user_id: str) -> AsyncIterator[list[Book]]:
        """Yield the user's books now and after every change made through this process."""
        async with self._broadcaster.listen(user_id) as signals:
            yield await self.list_books(user_id)
            async for _ in signals:
                yield await self.list_books(user_id)

    async def subscribe_sessions(self, user_id: str, book_id: str) -> AsyncIterator[list[ReadingSession]]:
        """Yield a book's sessions now and after every commit made through this process."""
        async with self._broadcaster.listen(BookRef(user_id, book_id)) as signals:
            yield await self.list_sessions(user_id, book_id)
            async for _ in signals:
                yield await self.list_sessions(user_id, book_id)

    async def _query(self, key_condition, **kwargs) -> list[Dict[str, Any]]:
        items: list[Dict[str, Any]] = []
        try:
            async with self._session.resource("dynamodb", region_name=self.region_name) as dynamodb:
                table = await dynamodb.Table(self.table_name)
                response = await table.query(KeyConditionExpression=key_condition, **kwargs)
                items.extend(response.get("Items", []))

                # Handle pagination if there are more items
                while "LastEvaluatedKey" in response:
                    response = await table.query(
                        KeyConditionExpression=key_condition,
                        ExclusiveStartKey=response["LastEvaluatedKey"],
                        **kwargs,
                    )
                    items.extend(response.get("Items", []))
        except ClientError as e:
            raise self._translate_error(e, "") from e
        except BotoCoreError as e:
            raise StoreUnavailableError(str(e)) from e
        return items

    def _translate_error(self, error: ClientError, book_id: str) -> Exception:
        """Map a DynamoDB client error onto the store error taxonomy.

        Conditional writes ask for the old item on failure: a failed check
        that returned the book means it changed, one without it means the
        book is gone.
        """
        code = error.response.get("Error", {}).get("Code", "")
        logger.warning(f"DynamoDB error {code} for book {book_id}: {error}")

        if code == "ConditionalCheckFailedException":
            failed = [error.response]
        elif code == "TransactionCanceledException":
            reasons = [r for r in error.response.get("CancellationReasons", []) if r]
            failed = [r for r in reasons if r.get("Code") == "ConditionalCheckFailed"]
            if not failed:
                codes = [r.get("Code") for r in reasons]
                if "TransactionConflict" in codes:
                    return ConcurrentModificationError(f"Book {book_id} is being modified concurrently")
                return StoreUnavailableError(f"Transaction cancelled: {', '.join(filter(None, codes)) or code}")
        else:
            failed = []

        if failed:
            if any("Item" in reason for reason in failed):
                return ConcurrentModificationError(f"Book {book_id} changed since it was read")
            return BookNotFoundError(book_id)
        if code == "TransactionConflictException":
            return ConcurrentModificationError(f"Book {book_id} is being modified concurrently")
        if code in ("AccessDeniedException", "UnrecognizedClientException"):
            return PermissionDeniedError(f"Access denied to table {self.table_name}")
        return StoreUnavailableError(f"DynamoDB request failed: {code or error}")

    @staticmethod
    def _partition(user_id: str) -> str:
        return f"USER#{user_id}"

    def _book_key(self, user_id: str, book_id: str) -> Dict[str, str]:
        return {"pk": self._partition(user_id), "sk": f"BOOK#{book_id}"}

    @staticmethod
    def _serialize(values: Dict[str, Any]) -> Dict[str, Any]:
        return {key: _serializer.serialize(value) for key, value in values.items()}

    def _book_to_item(self, book: Book) -> Dict[str, Any]:
        """Convert a Book entity to a DynamoDB item.

        Args:
            book: The book entity.

        Returns:
            Dict: The DynamoDB item representation.
        """
        item = {
            **self._book_key(book.user_id, book.id),
            "entity": "book",
            "id": book.id,
            "user_id": book.user_id,
            "title": book.title,
            "author": book.author,
            "category": book.category,
            "cover_url": book.cover_url,
            "status": book.status.value,
            "pages_read": book.pages_read,
            "version": book.version,
            "created_at": book.created_at.isoformat(),
            "updated_at": book.updated_at.isoformat(),
        }
        for field in _BOOK_OPTIONAL_FIELDS:
            value = getattr(book, field)
            if value is not None:
                item[field] = value
        return item

    def _item_to_book(self, item: Dict[str, Any]) -> Book:
        """Convert a DynamoDB item to a Book entity.

        Numbers come back from DynamoDB as Decimal and are cast to int.
        """
        total_pages = item.get("total_pages")
        return Book(
            id=item["id"],
            user_id=item["user_id"],
            title=item["title"],
            author=item["author"],
            category=item["category"],
            isbn=item.get("isbn"),
            description=item.get("description"),
            cover_url=item["cover_url"],
            status=BookStatus(item["status"]),
            total_pages=int(total_pages) if total_pages is not None else None,
            pages_read=int(item.get("pages_read", 0)),
            version=int(item.get("version", 0)),
            created_at=datetime.fromisoformat(item["created_at"]),
            updated_at=datetime.fromisoformat(item["updated_at"]),
        )

    def _session_to_item(self, session: ReadingSession) -> Dict[str, Any]:
        """Convert a ReadingSession entity to a DynamoDB item."""
        committed_at = session.committed_at.isoformat()
        return {
            "pk": self._partition(session.user_id),
            "sk": f"BOOK#{session.book_id}#SESSION#{committed_at}#{session.id}",
            "entity": "session",
            "id": session.id,
            "book_id": session.book_id,
            "user_id": session.user_id,
            "start_page": session.start_page,
            "end_page": session.end_page,
            "pages_read_this_session": session.pages_read_this_session,
            "takeaway": session.takeaway,
            "date": session.date.isoformat(),
            "resulting_pages_read": session.resulting_pages_read,
            "committed_at": committed_at,
        }

    def _item_to_session(self, item: Dict[str, Any]) -> ReadingSession:
        """Convert a DynamoDB item to a ReadingSession entity."""
        return ReadingSession(
            id=item["id"],
            book_id=item["book_id"],
            user_id=item["user_id"],
            start_page=int(item["start_page"]),
            end_page=int(item["end_page"]),
            pages_read_this_session=int(item["pages_read_this_session"]),
            takeaway=item.get("takeaway", ""),
            date=datetime.fromisoformat(item["date"]),
            resulting_pages_read=int(item["resulting_pages_read"]),
            committed_at=datetime.fromisoformat(item["committed_at"]),
        )

"""Tests for DynamoDB book repository."""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from reading_tracker.domain.entities.book import Book, BookProgressUpdate, BookRef, BookStatus
from reading_tracker.domain.entities.errors import (
    BookNotFoundError,
    ConcurrentModificationError,
    PermissionDeniedError,
    StoreError,
    StoreUnavailableError,
)
from reading_tracker.domain.entities.reading_session import ReadingSession
from reading_tracker.infrastructure.dynamodb_book_repository import DynamoDBBookRepository


def client_error(code, operation="PutItem", **extra):
    return ClientError({"Error": {"Code": code, "Message": code}, **extra}, operation)


@pytest.fixture
def mock_dynamodb_table():
    """Create a mock DynamoDB table."""
    return AsyncMock()


@pytest.fixture
def mock_dynamodb_resource(mock_dynamodb_table):
    """Create a mock DynamoDB resource."""
    mock_resource = MagicMock()
    mock_resource.Table = AsyncMock(return_value=mock_dynamodb_table)
    return mock_resource


@pytest.fixture
def mock_dynamodb_client():
    """Create a mock low-level DynamoDB client."""
    return AsyncMock()


@pytest.fixture
def mock_aioboto3_session(mock_dynamodb_resource, mock_dynamodb_client):
    """Create a mock aioboto3 session."""
    with patch("reading_tracker.infrastructure.dynamodb_book_repository.aioboto3.Session") as mock_session_class:
        mock_session_instance = MagicMock()
        mock_session_class.return_value = mock_session_instance

        # Setup async context managers for resource and client
        mock_session_instance.resource.return_value.__aenter__ = AsyncMock(return_value=mock_dynamodb_resource)
        mock_session_instance.resource.return_value.__aexit__ = AsyncMock(return_value=None)
        mock_session_instance.client.return_value.__aenter__ = AsyncMock(return_value=mock_dynamodb_client)
        mock_session_instance.client.return_value.__aexit__ = AsyncMock(return_value=None)

        yield mock_session_instance


@pytest.fixture
def repository(mock_aioboto3_session):
    """Create a DynamoDB book repository instance."""
    return DynamoDBBookRepository(table_name="test-books", region_name="us-east-1")


@pytest.fixture
def sample_book():
    return Book(
        id="book-xyz",
        user_id="uid-abc",
        title="Dune",
        author="Frank Herbert",
        category="Sci-Fi",
        cover_url="https://picsum.photos/seed/Dune/300/450",
        status=BookStatus.READING,
        total_pages=412,
        pages_read=120,
        version=2,
        created_at=datetime(2026, 1, 13, 10, 0, tzinfo=timezone.utc),
        updated_at=datetime(2026, 1, 13, 10, 30, tzinfo=timezone.utc),
    )


@pytest.fixture
def sample_book_item():
    """Create a sample DynamoDB book item."""
    return {
        "pk": "USER#uid-abc",
        "sk": "BOOK#book-xyz",
        "entity": "book",
        "id": "book-xyz",
        "user_id": "uid-abc",
        "title": "Dune",
        "author": "Frank Herbert",
        "category": "Sci-Fi",
        "cover_url": "https://picsum.photos/seed/Dune/300/450",
        "status": "Reading",
        "total_pages": Decimal("412"),
        "pages_read": Decimal("120"),
        "version": Decimal("2"),
        "created_at": "2026-01-13T10:00:00+00:00",
        "updated_at": "2026-01-13T10:30:00+00:00",
    }


@pytest.fixture
def sample_session():
    committed_at = datetime(2026, 1, 14, 21, 0, tzinfo=timezone.utc)
    return ReadingSession(
        id="session-1",
        book_id="book-xyz",
        user_id="uid-abc",
        start_page=121,
        end_page=150,
        pages_read_this_session=30,
        takeaway="Paul meets the Fremen",
        date=committed_at,
        resulting_pages_read=150,
        committed_at=committed_at,
    )


class TestDynamoDBBookRepository:
    """Test cases for DynamoDBBookRepository."""

    def test_init(self, repository):
        """Test repository initialization."""
        assert repository.table_name == "test-books"
        assert repository.region_name == "us-east-1"

    @pytest.mark.asyncio
    async def test_create_book(self, repository, mock_dynamodb_table, sample_book):
        await repository.create_book(sample_book)

        mock_dynamodb_table.put_item.assert_called_once()
        item = mock_dynamodb_table.put_item.call_args.kwargs["Item"]
        assert item["pk"] == "USER#uid-abc"
        assert item["sk"] == "BOOK#book-xyz"
        assert item["entity"] == "book"
        assert item["status"] == "Reading"
        assert item["total_pages"] == 412
        assert item["pages_read"] == 120
        assert item["version"] == 2
        assert item["updated_at"] == "2026-01-13T10:30:00+00:00"
        assert "isbn" not in item
        assert "description" not in item
        assert "ConditionExpression" in mock_dynamodb_table.put_item.call_args.kwargs

    @pytest.mark.asyncio
    async def test_create_duplicate_book(self, repository, mock_dynamodb_table, sample_book):
        mock_dynamodb_table.put_item.side_effect = client_error("ConditionalCheckFailedException")

        with pytest.raises(StoreError, match="already exists"):
            await repository.create_book(sample_book)

    @pytest.mark.asyncio
    async def test_get_book_success(self, repository, mock_dynamodb_table, sample_book_item, sample_book):
        mock_dynamodb_table.get_item.return_value = {"Item": sample_book_item}

        result = await repository.get_book("uid-abc", "book-xyz")

        assert result == sample_book
        assert isinstance(result.total_pages, int)
        mock_dynamodb_table.get_item.assert_called_once_with(Key={"pk": "USER#uid-abc", "sk": "BOOK#book-xyz"})

    @pytest.mark.asyncio
    async def test_get_book_not_found(self, repository, mock_dynamodb_table):
        mock_dynamodb_table.get_item.return_value = {}

        with pytest.raises(BookNotFoundError, match="Book with id book-xyz not found"):
            await repository.get_book("uid-abc", "book-xyz")

    @pytest.mark.asyncio
    async def test_update_book_bumps_version(self, repository, mock_dynamodb_table, sample_book):
        stored = await repository.update_book(sample_book.with_changes(title="Dune Messiah"), expected_version=2)

        assert stored.version == 3
        kwargs = mock_dynamodb_table.put_item.call_args.kwargs
        assert kwargs["Item"]["version"] == 3
        assert kwargs["Item"]["title"] == "Dune Messiah"
        assert kwargs["ReturnValuesOnConditionCheckFailure"] == "ALL_OLD"

    @pytest.mark.asyncio
    async def test_update_book_with_stale_version(self, repository, mock_dynamodb_table, sample_book, sample_book_item):
        mock_dynamodb_table.put_item.side_effect = client_error("ConditionalCheckFailedException", Item=sample_book_item)

        with pytest.raises(ConcurrentModificationError):
            await repository.update_book(sample_book, expected_version=1)

    @pytest.mark.asyncio
    async def test_update_missing_book(self, repository, mock_dynamodb_table, sample_book):
        mock_dynamodb_table.put_item.side_effect = client_error("ConditionalCheckFailedException")

        with pytest.raises(BookNotFoundError):
            await repository.update_book(sample_book)

    @pytest.mark.asyncio
    async def test_list_books_paginates(self, repository, mock_dynamodb_table, sample_book_item):
        newer = {**sample_book_item, "id": "book-2", "sk": "BOOK#book-2", "updated_at": "2026-02-01T00:00:00+00:00"}
        mock_dynamodb_table.query.side_effect = [
            {"Items": [sample_book_item], "LastEvaluatedKey": {"pk": "USER#uid-abc", "sk": "BOOK#book-xyz"}},
            {"Items": [newer]},
        ]

        books = await repository.list_books("uid-abc")

        assert [book.id for book in books] == ["book-2", "book-xyz"]
        assert mock_dynamodb_table.query.call_count == 2
        second_call = mock_dynamodb_table.query.call_args_list[1]
        assert second_call.kwargs["ExclusiveStartKey"] == {"pk": "USER#uid-abc", "sk": "BOOK#book-xyz"}

    @pytest.mark.asyncio
    async def test_list_sessions(self, repository, mock_dynamodb_table, sample_session):
        item = repository._session_to_item(sample_session)
        item["start_page"] = Decimal("121")
        mock_dynamodb_table.query.return_value = {"Items": [item]}

        sessions = await repository.list_sessions("uid-abc", "book-xyz")

        assert sessions == [sample_session]

    def test_session_sort_key_orders_by_commit_time(self, repository, sample_session):
        item = repository._session_to_item(sample_session)
        assert item["sk"] == "BOOK#book-xyz#SESSION#2026-01-14T21:00:00+00:00#session-1"

    @pytest.mark.asyncio
    async def test_commit_session_is_one_transaction(self, repository, mock_dynamodb_client, sample_session):
        progress = BookProgressUpdate(
            pages_read=150,
            status=BookStatus.READING,
            updated_at=datetime(2026, 1, 14, 21, 0, tzinfo=timezone.utc),
        )

        await repository.commit_session(
            BookRef("uid-abc", "book-xyz"), sample_session, progress, expected_version=2
        )

        mock_dynamodb_client.transact_write_items.assert_called_once()
        items = mock_dynamodb_client.transact_write_items.call_args.kwargs["TransactItems"]
        put, update = items[0]["Put"], items[1]["Update"]

        assert put["TableName"] == "test-books"
        assert put["Item"]["sk"] == {"S": "BOOK#book-xyz#SESSION#2026-01-14T21:00:00+00:00#session-1"}
        assert put["Item"]["pages_read_this_session"] == {"N": "30"}
        assert update["Key"] == {"pk": {"S": "USER#uid-abc"}, "sk": {"S": "BOOK#book-xyz"}}
        assert "#version = :expected_version" in update["ConditionExpression"]
        assert "total_pages >= :pages_read" in update["ConditionExpression"]
        assert "if_not_exists(#version, :zero) + :one" in update["UpdateExpression"]
        assert update["ExpressionAttributeNames"] == {"#status": "status", "#version": "version"}
        assert update["ReturnValuesOnConditionCheckFailure"] == "ALL_OLD"
        assert update["ExpressionAttributeValues"][":pages_read"] == {"N": "150"}
        assert update["ExpressionAttributeValues"][":status"] == {"S": "Reading"}
        assert update["ExpressionAttributeValues"][":expected_version"] == {"N": "2"}

    @pytest.mark.asyncio
    async def test_commit_without_expected_version(self, repository, mock_dynamodb_client, sample_session):
        progress = BookProgressUpdate(pages_read=150, status=BookStatus.READING, updated_at=sample_session.committed_at)

        await repository.commit_session(BookRef("uid-abc", "book-xyz"), sample_session, progress)

        update = mock_dynamodb_client.transact_write_items.call_args.kwargs["TransactItems"][1]["Update"]
        assert update["ConditionExpression"] == (
            "attribute_exists(pk) AND (attribute_not_exists(total_pages) OR total_pages >= :pages_read)"
        )
        assert ":expected_version" not in update["ExpressionAttributeValues"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error, expected",
        [
            (
                client_error(
                    "TransactionCanceledException",
                    "TransactWriteItems",
                    CancellationReasons=[{"Code": "None"}, {"Code": "ConditionalCheckFailed", "Item": {"pk": {"S": "USER#uid-abc"}}}],
                ),
                ConcurrentModificationError,
            ),
            (
                client_error(
                    "TransactionCanceledException",
                    "TransactWriteItems",
                    CancellationReasons=[{"Code": "None"}, {"Code": "ConditionalCheckFailed"}],
                ),
                BookNotFoundError,
            ),
            (
                client_error(
                    "TransactionCanceledException",
                    "TransactWriteItems",
                    CancellationReasons=[{"Code": "None"}, {"Code": "TransactionConflict"}],
                ),
                ConcurrentModificationError,
            ),
            (client_error("AccessDeniedException", "TransactWriteItems"), PermissionDeniedError),
            (client_error("ProvisionedThroughputExceededException", "TransactWriteItems"), StoreUnavailableError),
            (EndpointConnectionError(endpoint_url="https://dynamodb.us-east-1.amazonaws.com"), StoreUnavailableError),
        ],
    )
    async def test_commit_errors_are_translated(self, repository, mock_dynamodb_client, sample_session, error, expected):
        mock_dynamodb_client.transact_write_items.side_effect = error
        progress = BookProgressUpdate(pages_read=150, status=BookStatus.READING, updated_at=sample_session.committed_at)

        with pytest.raises(expected):
            await repository.commit_session(BookRef("uid-abc", "book-xyz"), sample_session, progress, expected_version=2)

    @pytest.mark.asyncio
    async def test_commit_on_missing_book_without_guard(self, repository, mock_dynamodb_client, sample_session):
        mock_dynamodb_client.transact_write_items.side_effect = client_error(
            "TransactionCanceledException",
            "TransactWriteItems",
            CancellationReasons=[{"Code": "None"}, {"Code": "ConditionalCheckFailed"}],
        )
        progress = BookProgressUpdate(pages_read=150, status=BookStatus.READING, updated_at=sample_session.committed_at)

        with pytest.raises(BookNotFoundError):
            await repository.commit_session(BookRef("uid-abc", "book-xyz"), sample_session, progress)

    @pytest.mark.asyncio
    async def test_commit_beyond_stored_length_without_guard(self, repository, mock_dynamodb_client, sample_session):
        """The book was shrunk after the session was reconciled against it."""
        mock_dynamodb_client.transact_write_items.side_effect = client_error(
            "TransactionCanceledException",
            "TransactWriteItems",
            CancellationReasons=[{"Code": "None"}, {"Code": "ConditionalCheckFailed", "Item": {"total_pages": {"N": "100"}}}],
        )
        progress = BookProgressUpdate(pages_read=150, status=BookStatus.READING, updated_at=sample_session.committed_at)

        with pytest.raises(ConcurrentModificationError):
            await repository.commit_session(BookRef("uid-abc", "book-xyz"), sample_session, progress)

    @pytest.mark.asyncio
    async def test_subscribe_sessions_emits_after_commit(
        self, repository, mock_dynamodb_table, mock_dynamodb_client, sample_session
    ):
        mock_dynamodb_table.query.side_effect = [
            {"Items": []},
            {"Items": [repository._session_to_item(sample_session)]},
        ]
        feed = repository.subscribe_sessions("uid-abc", "book-xyz")

        assert await anext(feed) == []

        progress = BookProgressUpdate(pages_read=150, status=BookStatus.READING, updated_at=sample_session.committed_at)
        await repository.commit_session(BookRef("uid-abc", "book-xyz"), sample_session, progress)

        assert await asyncio.wait_for(anext(feed), timeout=1) == [sample_session]
        await feed.aclose()

"""Infrastructure layer components."""

from .change_broadcaster import ChangeBroadcaster
from .dynamodb_book_repository import DynamoDBBookRepository
from .local_book_repository import LocalBookRepository
from .local_cover_storage import LocalCoverStorage
from .s3_cover_storage import S3CoverStorage

__all__ = [
    "ChangeBroadcaster",
    "DynamoDBBookRepository",
    "LocalBookRepository",
    "LocalCoverStorage",
    "S3CoverStorage",
]

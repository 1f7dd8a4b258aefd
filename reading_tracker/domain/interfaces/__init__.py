"""Domain interfaces for the reading tracker application."""

from .book_repository import BookRepository
from .cover_storage import CoverStorage

__all__ = ["BookRepository", "CoverStorage"]

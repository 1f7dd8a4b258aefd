"""Cover-related entities."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class CoverUpload:
    """An uploaded cover image awaiting storage."""

    data: bytes
    filename: str
    content_type: str

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class CoverResolution:
    """Outcome of resolving a book's cover.

    `stale_url` is the previous blob-hosted cover that should be deleted
    once the book update carrying `url` has been persisted.
    """

    url: str
    stale_url: Optional[str] = None
    uploaded: bool = False

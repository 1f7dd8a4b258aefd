"""Error taxonomy for the reading tracker."""

from typing import Optional

from .session_submission import RejectionReason


class ReadingTrackerError(Exception):
    """Base class for all reading tracker errors."""

    pass


class ValidationError(ReadingTrackerError, ValueError):
    """A reading session submission was rejected before any store call."""

    def __init__(self, reason: RejectionReason, message: str):
        super().__init__(message)
        self.reason = reason
        self.message = message


class PolicyError(ReadingTrackerError, ValueError):
    """Cover input (URL or upload) was rejected by the cover policy."""

    pass


class BookNotFoundError(ReadingTrackerError, ValueError):
    """The book does not exist under the given owner."""

    def __init__(self, book_id: str):
        super().__init__(f"Book with id {book_id} not found")
        self.book_id = book_id


class AuthenticationError(ReadingTrackerError):
    """The identity token is missing, malformed or expired."""

    pass


class StoreError(ReadingTrackerError):
    """Base class for document and blob store failures."""

    pass


class StoreUnavailableError(StoreError):
    """The store could not be reached or failed transiently."""

    pass


class PermissionDeniedError(StoreError):
    """The store refused the operation for this owner."""

    pass


class ConcurrentModificationError(StoreError):
    """A conditional write found the book changed since it was read."""

    pass


class CommitError(ReadingTrackerError):
    """The atomic session commit failed; nothing was written."""

    def __init__(self, message: str, conflict: bool = False, cause: Optional[Exception] = None):
        super().__init__(message)
        self.conflict = conflict
        self.cause = cause


class CleanupWarning(ReadingTrackerError):
    """An orphaned cover asset could not be deleted.

    Never raised to callers; the cover policy logs it and moves on.
    """

    def __init__(self, url: str, cause: Exception):
        super().__init__(f"Failed to delete cover asset {url}: {cause}")
        self.url = url
        self.cause = cause

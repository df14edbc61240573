"""
Error taxonomy for the link store.

Every backend raises these (never a driver-specific exception) so the
service layer and the HTTP surface can tell the outcomes apart:

    NotFoundError          no such short id / owner has no live links
    GoneError              short id exists but was soft-deleted
    ConflictError          original URL already has a live mapping
    ShortIDTakenError      short id already used by some record (never reused)
    InvalidInputError      malformed owner identifier
    UnavailableError       backend unreachable (relational only)
    NotImplementedYetError backend variant lacks the operation
    PersistenceError       file backend could not read or write its file
    DeadlineExceededError  caller deadline expired or context cancelled
"""

from typing import Optional

__all__ = [
    "StorageError",
    "NotFoundError",
    "GoneError",
    "ConflictError",
    "ShortIDTakenError",
    "InvalidInputError",
    "UnavailableError",
    "NotImplementedYetError",
    "PersistenceError",
    "DeadlineExceededError",
]


class StorageError(Exception):
    """Base class for every link-store failure.

    Args:
        message: Human readable description.
        op: Name of the operation that failed (e.g. "insert_one").
    """

    def __init__(self, message: str = "", op: Optional[str] = None):
        self.op = op
        if op:
            message = f"{op}: {message}" if message else op
        super().__init__(message)


class NotFoundError(StorageError):
    """Raised when no (live) record matches the lookup."""


class GoneError(StorageError):
    """Raised when the short id exists but has been soft-deleted."""


class ConflictError(StorageError):
    """Raised when the original URL already has a live mapping.

    `short_id` names the existing mapping when the backend knows it; callers
    that need it otherwise can recover via `find_short_id_by_original_url`.
    """

    def __init__(self, message: str = "", op: Optional[str] = None, short_id: Optional[str] = None):
        self.short_id = short_id
        super().__init__(message, op=op)


class ShortIDTakenError(ConflictError):
    """Raised when the short id is already used by a record (live or deleted)."""


class InvalidInputError(StorageError):
    """Raised when an owner identifier cannot be parsed."""


class UnavailableError(StorageError):
    """Raised when the backend cannot be reached."""


class NotImplementedYetError(StorageError):
    """Raised by backends that do not support an operation.

    Reserved: every bundled backend implements the full contract, so none of
    them raises it today. Third-party backends may.
    """


class PersistenceError(StorageError):
    """Raised when durable state could not be read or written."""


class DeadlineExceededError(StorageError):
    """Raised when the caller's deadline expired or the call was cancelled."""

"""
Base storage interface for the link shortener.

Purpose:
    Define a small, stable contract that every storage backend
    (in-memory, JSON file, PostgreSQL) implements, so the service layer and
    the deletion workers never depend on where links live.

Contract summary:
    - Lookups raise NotFoundError / GoneError instead of returning None, so
      callers can tell "never existed" from "deleted".
    - Inserts raise ConflictError when the original URL already has a live
      mapping and ShortIDTakenError when the short id is used (deleted or not).
    - insert_many is all-or-nothing.
    - soft_delete only touches records owned by the caller and is idempotent.
    - Every method accepts an optional `ctx` (shortener.context.Context).

Testing & Coverage:
    These are abstract methods and are not executed directly in tests.
    We annotate them with `# pragma: no cover` so coverage tools don't
    penalize the project for un-runnable abstract declarations.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, Mapping, Optional, Union

from ..context import Context
from ..models import UserID

Owner = Union[UserID, str]


class BaseStorage(ABC):
    """Abstract base class for storage backends."""

    @abstractmethod  # pragma: no cover
    def find_original_url(self, short_id: str, *, ctx: Optional[Context] = None) -> str:
        """
        Return the original URL stored under `short_id`.

        Raises:
            NotFoundError: No record with this short id.
            GoneError: The record exists but is soft-deleted.
        """
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def find_short_id_by_original_url(self, original_url: str, *, ctx: Optional[Context] = None) -> str:
        """
        Return the short id of the live mapping for `original_url`.

        Raises:
            NotFoundError: No live mapping (absent, or only deleted matches).
        """
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def find_urls_by_owner(self, owner: Owner, *, ctx: Optional[Context] = None) -> Dict[str, str]:
        """
        Return {short_id: original_url} for the owner's live records.

        Raises:
            NotFoundError: The owner has zero live records (never an empty dict).
            InvalidInputError: `owner` is not a valid user id.
        """
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def insert_one(self, owner: Owner, short_id: str, original_url: str, *, ctx: Optional[Context] = None) -> None:
        """
        Persist a single (short_id, original_url) pair owned by `owner`.

        Raises:
            ConflictError: `original_url` already has a live mapping.
            ShortIDTakenError: `short_id` is already used.
            InvalidInputError: `owner` is not a valid user id.
        """
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def insert_many(self, owner: Owner, pairs: Mapping[str, str], *, ctx: Optional[Context] = None) -> None:
        """
        Persist {short_id: original_url} pairs atomically: either every pair
        becomes visible or none does.
        """
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def soft_delete(self, owner: Owner, short_ids: Iterable[str], *, ctx: Optional[Context] = None) -> None:
        """
        Mark the listed records owned by `owner` as deleted.

        Records owned by someone else, unknown ids and already-deleted records
        are skipped silently.
        """
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def health_check(self, *, ctx: Optional[Context] = None) -> None:
        """
        Raise UnavailableError if the backend cannot be reached.
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release backend resources. Default: nothing to release."""
        return None

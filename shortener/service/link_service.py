"""
ShortenerService module.

Responsibilities:
    - Parse owner identifiers (UUID) before anything reaches storage
    - Orchestrate inserts, batch inserts, lookups, user listings and health checks
    - Hand soft-deletes to the deletion worker pool (fire-and-forget)
    - Generate short ids and recover from conflicts (`shorten`, `shorten_batch`)

Design notes:
    - The storage backend is constructed once (`from_settings`) and injected;
      the worker pool shares the same instance.
    - Storage errors keep their kind on the way up: they are logged with the
      operation name and re-raised unchanged, so the HTTP layer can map
      NotFound/Gone/Conflict/Unavailable to status codes.
    - Everything here is keyed by plain strings; only this layer knows that
      owners are UUIDs.
"""

import logging
from typing import Dict, Iterable, Mapping, Optional, Tuple

from ..config import settings as default_settings
from ..context import Context
from ..errors import ConflictError, NotFoundError, ShortIDTakenError, StorageError
from ..models import parse_user_id
from ..storage.base import BaseStorage
from ..storage.storage_factory import get_storage
from .deleter import DeletionWorkerPool
from .strategies import BaseStrategy, RandomStrategy

log = logging.getLogger(__name__)


class ShortenerService:
    """
    Service layer in front of a storage backend and the deletion worker pool.

    Args:
        storage: Backend instance (owned by the service from now on).
        workers: Number of deletion worker threads.
        queue_size: Bound of the deletion queue (0 = unbounded).
        strategy: Short id generator (defaults to RandomStrategy).
        max_attempts: How many fresh ids `shorten` tries when an id is taken.
        start_workers: Launch the worker pool immediately.
    """

    def __init__(
        self,
        storage: BaseStorage,
        *,
        workers: int = 5,
        queue_size: int = 0,
        strategy: Optional[BaseStrategy] = None,
        max_attempts: int = 5,
        start_workers: bool = True,
    ):
        self.storage = storage
        self.strategy = strategy or RandomStrategy()
        self.max_attempts = max_attempts
        self.deleter = DeletionWorkerPool(storage, workers=workers, queue_size=queue_size)
        if start_workers:
            self.deleter.start()

    @classmethod
    def from_settings(cls, settings=default_settings, **kwargs) -> "ShortenerService":
        """Build the storage backend from configuration and wrap it in a service."""
        storage = get_storage(
            settings.STORAGE_BACKEND or None,
            dsn=settings.DATABASE_DSN,
            path=settings.FILE_STORAGE_PATH,
        )
        kwargs.setdefault("workers", settings.DELETE_WORKERS)
        kwargs.setdefault("queue_size", settings.DELETE_QUEUE_SIZE)
        kwargs.setdefault("strategy", RandomStrategy(length=settings.SHORT_ID_LENGTH))
        return cls(storage, **kwargs)

    def close(self) -> None:
        """Stop the workers (after queued jobs) and release the backend."""
        self.deleter.shutdown(wait=True)
        self.storage.close()

    # ---------------------------------------------------------------------
    # Lookups
    # ---------------------------------------------------------------------
    def find_original_url(self, short_id: str, ctx: Optional[Context] = None) -> str:
        try:
            return self.storage.find_original_url(short_id, ctx=ctx)
        except StorageError as exc:
            log.debug("unable to find original url: %s", exc)
            raise

    def find_short_id_by_original_url(self, original_url: str, ctx: Optional[Context] = None) -> str:
        try:
            return self.storage.find_short_id_by_original_url(original_url, ctx=ctx)
        except StorageError as exc:
            log.debug("unable to find short id: %s", exc)
            raise

    def find_urls_by_owner(self, owner: str, ctx: Optional[Context] = None) -> Dict[str, str]:
        uid = parse_user_id(owner, op="find_urls_by_owner")
        try:
            return self.storage.find_urls_by_owner(uid, ctx=ctx)
        except StorageError as exc:
            log.debug("unable to find urls by user: %s", exc)
            raise

    # ---------------------------------------------------------------------
    # Inserts
    # ---------------------------------------------------------------------
    def insert_url(self, owner: str, short_id: str, original_url: str, ctx: Optional[Context] = None) -> None:
        uid = parse_user_id(owner, op="insert_one")
        try:
            self.storage.insert_one(uid, short_id, original_url, ctx=ctx)
        except StorageError as exc:
            log.info("unable to insert url pair: %s", exc)
            raise

    def insert_many(self, owner: str, pairs: Mapping[str, str], ctx: Optional[Context] = None) -> None:
        uid = parse_user_id(owner, op="insert_many")
        try:
            self.storage.insert_many(uid, pairs, ctx=ctx)
        except StorageError as exc:
            log.info("unable to insert many urls: %s", exc)
            raise

    def shorten(self, owner: str, original_url: str, ctx: Optional[Context] = None) -> Tuple[str, bool]:
        """
        Create a short id for `original_url`, or return the existing one.

        Returns:
            (short_id, created): `created` is False when the URL already had a
            live mapping and `short_id` is that existing id.

        Raises:
            InvalidInputError: Malformed owner id.
            ShortIDTakenError: Every generated id collided (max_attempts).
        """
        uid = parse_user_id(owner, op="shorten")
        last_exc: Optional[ShortIDTakenError] = None
        for _ in range(self.max_attempts):
            short_id = self.strategy.generate()
            try:
                self.storage.insert_one(uid, short_id, original_url, ctx=ctx)
                return short_id, True
            except ShortIDTakenError as exc:
                log.debug("short id %s collided, regenerating", short_id)
                last_exc = exc
            except ConflictError as exc:
                if exc.short_id:
                    return exc.short_id, False
                return self._recover_conflict(original_url, ctx), False
        log.error("unable to generate a free short id after %d attempts", self.max_attempts)
        assert last_exc is not None
        raise last_exc

    def _recover_conflict(self, original_url: str, ctx: Optional[Context]) -> str:
        try:
            return self.storage.find_short_id_by_original_url(original_url, ctx=ctx)
        except NotFoundError:
            # The live mapping was deleted between the insert and the lookup.
            log.warning("conflicting mapping for %r vanished during recovery", original_url)
            raise

    def shorten_batch(self, owner: str, items: Mapping[str, str], ctx: Optional[Context] = None) -> Dict[str, str]:
        """
        Shorten many URLs at once.

        Args:
            owner: Owner id (UUID string).
            items: {correlation_id: original_url}

        Returns:
            {correlation_id: short_id}

        The batch is stored with one `insert_many` call, so either every URL
        is stored or none is. A short id collision regenerates the whole
        batch, up to `max_attempts` times.
        """
        uid = parse_user_id(owner, op="shorten_batch")
        last_exc: Optional[ShortIDTakenError] = None
        for _ in range(self.max_attempts):
            result: Dict[str, str] = {}
            pairs: Dict[str, str] = {}
            for correlation_id, original_url in items.items():
                short_id = self.strategy.generate()
                while short_id in pairs:
                    short_id = self.strategy.generate()
                pairs[short_id] = original_url
                result[correlation_id] = short_id
            try:
                self.insert_many(str(uid), pairs, ctx=ctx)
                return result
            except ShortIDTakenError as exc:
                log.debug("short id collided in batch of %d, regenerating", len(pairs))
                last_exc = exc
        log.error("unable to generate free short ids for batch after %d attempts", self.max_attempts)
        assert last_exc is not None
        raise last_exc

    # ---------------------------------------------------------------------
    # Deletes and health
    # ---------------------------------------------------------------------
    def delete_urls(self, owner: str, short_ids: Iterable[str]) -> bool:
        """
        Queue a soft-delete of `short_ids` owned by `owner` and return at once.

        Owner parsing happens on the worker; failures there are logged only.
        """
        return self.deleter.submit(owner, short_ids)

    def ping(self, ctx: Optional[Context] = None) -> None:
        try:
            self.storage.health_check(ctx=ctx)
        except StorageError as exc:
            log.error("unable to perform ping: %s", exc)
            raise

"""
Storage module for the link shortener (in-memory implementation).

Responsibilities:
    - Keep short id -> Link records in a dict
    - Maintain a secondary index of live original URLs for O(1) dedupe
    - Enforce short id uniqueness (deleted ids are never reused) and live
      original URL uniqueness
    - Provide lookups by short id, by original URL and by owner
    - Soft-delete records on behalf of their owner

Design:
    - One coarse re-entrant lock guards every read and every
      "mutate + persist" region, so concurrent callers (request threads and
      deletion workers) never observe a half-applied batch.
    - `_persist()` is a no-op here. Durable subclasses (see file_storage.py)
      override it and set `durable = True`; the base class then snapshots
      the state before a mutation and restores it if persisting fails.
    - Cancellation is advisory: the context is checked before the call only.
"""

import contextlib
import dataclasses
import logging
import threading
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple

from ..context import Context, check
from ..errors import ConflictError, GoneError, NotFoundError, ShortIDTakenError
from ..models import Link, parse_user_id
from .base import BaseStorage, Owner

log = logging.getLogger(__name__)

_Snapshot = Tuple[Dict[str, Link], Dict[str, str]]


class MemoryStorage(BaseStorage):
    durable = False

    def __init__(self):
        """
        Initialize empty storage.

        Internal schema:
            self.links = {short_id: Link(short_id, original_url, owner, deleted)}
            self._live_urls = {original_url: short_id}   # live records only
        """
        self.links: Dict[str, Link] = {}
        self._live_urls: Dict[str, str] = {}
        self._lock = threading.RLock()

    # ---- Internal helpers -------------------------------------------------

    def _persist(self) -> None:
        """Make the current state durable. Nothing to do in memory."""
        return None

    def _snapshot(self) -> _Snapshot:
        links = {sid: dataclasses.replace(link) for sid, link in self.links.items()}
        return links, dict(self._live_urls)

    def _restore(self, snapshot: _Snapshot) -> None:
        self.links, self._live_urls = snapshot

    @contextlib.contextmanager
    def _mutation(self, op: str) -> Iterator[None]:
        """
        Run a mutation under the lock and persist it before releasing.

        If the body or `_persist()` raises, the in-memory state is rolled back
        to what it was on entry (durable backends only; the in-memory backend
        validates before it mutates so there is nothing to undo).
        """
        with self._lock:
            snapshot = self._snapshot() if self.durable else None
            try:
                yield
                self._persist()
            except Exception:
                if snapshot is not None:
                    log.warning("%s failed, rolling back in-memory state", op)
                    self._restore(snapshot)
                raise

    def _ensure_insertable(self, short_id: str, original_url: str, op: str) -> None:
        if short_id in self.links:
            raise ShortIDTakenError(f"short id {short_id!r} is already taken", op=op)
        existing = self._live_urls.get(original_url)
        if existing is not None:
            raise ConflictError(
                f"original url {original_url!r} is already shortened as {existing!r}",
                op=op,
                short_id=existing,
            )

    def _put(self, link: Link) -> None:
        self.links[link.short_id] = link
        if link.live:
            self._live_urls[link.original_url] = link.short_id

    # ---- Contract methods -------------------------------------------------

    def find_original_url(self, short_id: str, *, ctx: Optional[Context] = None) -> str:
        check(ctx, "find_original_url")
        with self._lock:
            link = self.links.get(short_id)
            if link is None:
                raise NotFoundError(f"no URL was found for {short_id!r}", op="find_original_url")
            if link.deleted:
                raise GoneError(f"short id {short_id!r} was deleted", op="find_original_url")
            return link.original_url

    def find_short_id_by_original_url(self, original_url: str, *, ctx: Optional[Context] = None) -> str:
        check(ctx, "find_short_id_by_original_url")
        with self._lock:
            short_id = self._live_urls.get(original_url)
        if short_id is None:
            raise NotFoundError(f"no short id was found for {original_url!r}", op="find_short_id_by_original_url")
        return short_id

    def find_urls_by_owner(self, owner: Owner, *, ctx: Optional[Context] = None) -> Dict[str, str]:
        uid = parse_user_id(owner, op="find_urls_by_owner")
        check(ctx, "find_urls_by_owner")
        with self._lock:
            urls = {
                sid: link.original_url
                for sid, link in self.links.items()
                if link.owner == uid and link.live
            }
        if not urls:
            raise NotFoundError(f"no URLs were found for user {uid}", op="find_urls_by_owner")
        return urls

    def insert_one(self, owner: Owner, short_id: str, original_url: str, *, ctx: Optional[Context] = None) -> None:
        uid = parse_user_id(owner, op="insert_one")
        check(ctx, "insert_one")
        with self._mutation("insert_one"):
            self._ensure_insertable(short_id, original_url, "insert_one")
            self._put(Link(short_id, original_url, uid))

    def insert_many(self, owner: Owner, pairs: Mapping[str, str], *, ctx: Optional[Context] = None) -> None:
        uid = parse_user_id(owner, op="insert_many")
        check(ctx, "insert_many")
        if not pairs:
            return
        with self._mutation("insert_many"):
            # Validate the whole batch first so a conflict leaves nothing behind.
            batch_urls: Dict[str, str] = {}
            for short_id, original_url in pairs.items():
                self._ensure_insertable(short_id, original_url, "insert_many")
                if original_url in batch_urls:
                    raise ConflictError(
                        f"original url {original_url!r} appears twice in the batch",
                        op="insert_many",
                        short_id=batch_urls[original_url],
                    )
                batch_urls[original_url] = short_id
            for short_id, original_url in pairs.items():
                self._put(Link(short_id, original_url, uid))

    def soft_delete(self, owner: Owner, short_ids: Iterable[str], *, ctx: Optional[Context] = None) -> None:
        uid = parse_user_id(owner, op="soft_delete")
        check(ctx, "soft_delete")
        wanted = set(short_ids)
        with self._mutation("soft_delete"):
            flipped = 0
            for short_id in wanted:
                link = self.links.get(short_id)
                if link is None or link.owner != uid or link.deleted:
                    continue
                link.deleted = True
                if self._live_urls.get(link.original_url) == short_id:
                    del self._live_urls[link.original_url]
                flipped += 1
            log.debug("soft_delete: %d of %d ids marked deleted for user %s", flipped, len(wanted), uid)

    def health_check(self, *, ctx: Optional[Context] = None) -> None:
        check(ctx, "health_check")

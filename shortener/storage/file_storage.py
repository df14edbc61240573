"""
FileStorage – JSON-file-backed storage for the link shortener
============================================================

Keeps the in-memory dict of `MemoryStorage` as the read path and makes every
mutation durable by rewriting the whole mapping to a JSON file before the
call returns.

Key Design Points
-----------------
- **Consistency**: the rewrite happens while the storage lock is held. If it
  fails, the in-memory mutation is rolled back (see `MemoryStorage._mutation`)
  and `PersistenceError` is raised, so memory and disk never diverge.
- **Atomic replace**: data is written to a temp file in the same directory,
  fsynced, then moved over the target with `os.replace`. A crash mid-write
  leaves the previous file intact.
- **Startup**: the file is created if missing; an empty file is an empty
  store; a malformed file is a `PersistenceError`. A second live record for
  an already live URL is loaded as deleted.

On-disk schema
--------------
One JSON document keyed by short id::

    {
        "abcdef": {"Original": "https://example.com", "User": "<uuid>", "Deleted": false},
        ...
    }

Example
-------
>>> storage = FileStorage("/var/lib/shortener/urls.json")
>>> storage.insert_one("0b1f...", "abcdef", "https://example.com")
>>> storage.find_original_url("abcdef")
'https://example.com'
"""

import contextlib
import dataclasses
import json
import logging
import os
import tempfile
import uuid

from ..errors import PersistenceError
from ..models import Link
from .storage import MemoryStorage

log = logging.getLogger(__name__)


class FileStorage(MemoryStorage):
    """JSON file implementation of the link storage contract.

    Parameters
    ----------
    path : str
        Location of the JSON file. Parent directories must exist.
    """

    durable = True

    def __init__(self, path: str) -> None:
        super().__init__()
        self.path = path
        self._load()

    # ---- Serialization ----------------------------------------------------

    @staticmethod
    def _encode(link: Link) -> dict:
        return {"Original": link.original_url, "User": str(link.owner), "Deleted": link.deleted}

    @staticmethod
    def _decode(short_id: str, record: dict) -> Link:
        return Link(
            short_id=short_id,
            original_url=record["Original"],
            owner=uuid.UUID(record["User"]),
            deleted=bool(record.get("Deleted", False)),
        )

    def _load(self) -> None:
        """Read the whole file into memory (creating it when missing)."""
        try:
            with open(self.path, "a+", encoding="utf-8") as fh:
                fh.seek(0)
                raw = fh.read()
        except OSError as exc:
            log.error("unable to open file %s: %s", self.path, exc)
            raise PersistenceError(f"unable to open file {self.path}", op="load") from exc

        if not raw.strip():
            log.info("file storage %s is empty, starting fresh", self.path)
            return

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("top-level JSON value must be an object")
            links = [self._decode(sid, rec) for sid, rec in data.items()]
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            log.error("unable to decode file %s: %s", self.path, exc)
            raise PersistenceError(f"unable to decode file {self.path}", op="load") from exc

        for link in links:
            if link.live and link.original_url in self._live_urls:
                log.warning(
                    "duplicate live url %r in %s (%s and %s), keeping the first and marking %s deleted",
                    link.original_url, self.path, self._live_urls[link.original_url], link.short_id, link.short_id,
                )
                link = dataclasses.replace(link, deleted=True)
            self._put(link)
        log.info("loaded %d links from %s", len(self.links), self.path)

    def _write_file(self, payload: str) -> int:
        """Atomically replace the backing file with `payload`. Returns bytes written."""
        directory = os.path.dirname(os.path.abspath(self.path))
        fd, tmp_path = tempfile.mkstemp(prefix=".shortener-", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                written = fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_path)
            raise
        return written

    def _persist(self) -> None:
        data = {sid: self._encode(link) for sid, link in self.links.items()}
        try:
            payload = json.dumps(data)
            written = self._write_file(payload)
        except (OSError, TypeError, ValueError) as exc:
            log.error("unable to write data to file %s: %s", self.path, exc)
            raise PersistenceError(f"unable to write data to file {self.path}", op="persist") from exc
        log.debug("number of bytes written to %s: %d", self.path, written)

"""
Storage factory – pick the storage backend from config (lazy env version)
========================================================================

This module centralizes selection of the storage backend so the rest of the
app stays ignorant of where links live. The backend is chosen once, when the
service is built; nothing else constructs backends.

Selection rules
---------------
1. An explicit `backend` argument (or SHORTENER_STORAGE_BACKEND) wins:
   "memory", "file" or "postgres".
2. Otherwise a DSN (DATABASE_DSN) selects "postgres".
3. Otherwise a file path (FILE_STORAGE_PATH) selects "file".
4. Otherwise "memory".

Notes
-----
- Reads environment **at call time** to avoid stale values in tests.
- Imports the DB backend **only if** "postgres" is selected.
"""

import logging
import os
from typing import Optional

from shortener.storage.base import BaseStorage
from shortener.storage.storage import MemoryStorage

log = logging.getLogger(__name__)


def resolve_backend(backend: Optional[str] = None, dsn: str = "", path: str = "") -> str:
    """Return the backend name implied by the arguments (see module docstring)."""
    name = (backend or os.getenv("SHORTENER_STORAGE_BACKEND", "")).strip().lower()
    if name:
        return name
    if dsn:
        return "postgres"
    if path:
        return "file"
    return "memory"


def get_storage(backend: Optional[str] = None, **kwargs) -> BaseStorage:
    """
    Return a storage backend based on configuration.

    Parameters
    ----------
    backend : str, optional
        "memory", "file" or "postgres". If omitted, inferred (see module docstring).
    kwargs : dict
        dsn="..."        for postgres (defaults to env DATABASE_DSN)
        path="..."       for file     (defaults to env FILE_STORAGE_PATH)
        init_schema=bool for postgres; create the table if missing (default True)

    Returns
    -------
    BaseStorage
    """
    dsn = kwargs.get("dsn") or os.getenv("DATABASE_DSN", "")
    path = kwargs.get("path") or os.getenv("FILE_STORAGE_PATH", "")
    be = resolve_backend(backend, dsn=dsn, path=path)

    log.info("selected storage backend: %r", be)

    if be == "memory":
        return MemoryStorage()

    if be == "file":
        if not path:
            raise ValueError("FILE_STORAGE_PATH is required for file backend")
        from shortener.storage.file_storage import FileStorage

        return FileStorage(path)

    if be == "postgres":
        if not dsn:
            raise ValueError("DATABASE_DSN is required for postgres backend")
        # Local import to avoid hard dependency when not using postgres
        from shortener.storage.db_storage import DBStorage

        storage = DBStorage(dsn=dsn)
        if kwargs.get("init_schema", True):
            storage.ensure_schema()
        return storage

    raise ValueError(f"Unknown storage backend: {be!r}")

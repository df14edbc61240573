"""
Global pytest fixtures for the shortener test suite.

Responsibilities:
    - Provide isolated MemoryStorage and FileStorage fixtures for direct testing
    - Provide a ShortenerService wired to a fresh MemoryStorage (workers running)
    - Provide a fresh FastAPI TestClient via the app factory for integration tests

Why an app factory?
    `create_app(service=...)` lets each test own its service and storage, so
    no state leaks between tests.
"""

import uuid

import pytest
from fastapi.testclient import TestClient

from main import create_app
from shortener.service.link_service import ShortenerService
from shortener.storage.file_storage import FileStorage
from shortener.storage.storage import MemoryStorage


@pytest.fixture
def owner() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def other_owner() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def storage() -> MemoryStorage:
    """Provide a fresh in-memory storage backend."""
    return MemoryStorage()


@pytest.fixture
def file_path(tmp_path) -> str:
    return str(tmp_path / "urls.json")


@pytest.fixture
def file_storage(file_path) -> FileStorage:
    """Provide a FileStorage backed by a temp file."""
    return FileStorage(file_path)


@pytest.fixture
def service(storage: MemoryStorage):
    """
    Provide a ShortenerService wired to the storage fixture.

    The worker pool is shut down after the test so no threads linger.
    """
    svc = ShortenerService(storage, workers=5)
    yield svc
    svc.close()


@pytest.fixture
def client(service: ShortenerService):
    """Provide a TestClient around an app built on the service fixture."""
    app = create_app(service=service)
    with TestClient(app) as c:
        yield c

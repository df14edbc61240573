"""
Integration tests for the storage contract across backends.

These tests parameterize over available backends:
- Always "memory" and "file"
- "postgres" only if DATABASE_DSN is set (the `urls` table is truncated per test)

Every backend must give the same observable answers; nothing here knows
which one it is talking to.
"""

import os
import uuid

import pytest

from shortener.errors import ConflictError, GoneError, NotFoundError, ShortIDTakenError
from shortener.storage.storage_factory import get_storage


def available_backends():
    backends = ["memory", "file"]
    if os.getenv("DATABASE_DSN"):
        backends.append("postgres")
    return backends


@pytest.fixture(params=available_backends())
def storage(request, tmp_path):
    backend = request.param
    if backend == "file":
        return get_storage("file", path=str(tmp_path / "urls.json"))
    if backend == "postgres":
        import psycopg

        storage = get_storage("postgres", dsn=os.environ["DATABASE_DSN"])
        with psycopg.connect(storage.dsn, autocommit=True) as con:
            con.execute("TRUNCATE urls")
        return storage
    return get_storage("memory")


@pytest.fixture
def owner_a():
    return uuid.uuid4()


@pytest.fixture
def owner_b():
    return uuid.uuid4()


def test_gone_vs_not_found(storage, owner_a):
    storage.insert_one(owner_a, "abc", "https://x.com")
    storage.soft_delete(owner_a, {"abc"})
    with pytest.raises(GoneError):
        storage.find_original_url("abc")
    with pytest.raises(NotFoundError):
        storage.find_original_url("zzz")


def test_conflict_recovery(storage, owner_a, owner_b):
    storage.insert_one(owner_a, "first1", "https://x.com")
    with pytest.raises(ConflictError):
        storage.insert_one(owner_b, "second", "https://x.com")
    assert storage.find_short_id_by_original_url("https://x.com") == "first1"


def test_short_id_uniqueness(storage, owner_a, owner_b):
    storage.insert_one(owner_a, "same", "https://one.com")
    with pytest.raises(ShortIDTakenError):
        storage.insert_one(owner_b, "same", "https://two.com")
    with pytest.raises(ShortIDTakenError):
        storage.insert_many(owner_b, {"fresh": "https://three.com", "same": "https://four.com"})
    with pytest.raises(NotFoundError):
        storage.find_original_url("fresh")


def test_soft_delete_idempotence(storage, owner_a):
    storage.insert_many(owner_a, {"a1": "https://a.com", "b2": "https://b.com"})
    storage.soft_delete(owner_a, {"a1"})
    first = storage.find_urls_by_owner(owner_a)
    storage.soft_delete(owner_a, {"a1"})
    assert storage.find_urls_by_owner(owner_a) == first


def test_owner_isolation(storage, owner_a, owner_b):
    expected_a, expected_b = {}, {}
    for i in range(6):
        owner, expected = (owner_a, expected_a) if i % 2 == 0 else (owner_b, expected_b)
        short_id, url = f"id{i}", f"https://example.com/{i}"
        storage.insert_one(owner, short_id, url)
        expected[short_id] = url

    # Deleting b's id on behalf of a must be a silent no-op.
    storage.soft_delete(owner_a, {"id0", "id1"})
    del expected_a["id0"]

    assert storage.find_urls_by_owner(owner_a) == expected_a
    assert storage.find_urls_by_owner(owner_b) == expected_b


def test_batch_atomicity(storage, owner_a):
    storage.insert_one(owner_a, "taken", "https://taken.com")
    batch = {f"n{i}": f"https://n.com/{i}" for i in range(5)}
    batch["n5"] = "https://taken.com"
    with pytest.raises(ConflictError):
        storage.insert_many(owner_a, batch)
    for short_id in batch:
        with pytest.raises(NotFoundError):
            storage.find_original_url(short_id)


def test_end_to_end_insert_many_then_delete_two(storage, owner_a):
    pairs = {f"s{i:02d}": f"https://site{i}.example" for i in range(10)}
    storage.insert_many(owner_a, pairs)

    storage.soft_delete(owner_a, {"s03", "s07"})

    listed = storage.find_urls_by_owner(owner_a)
    assert len(listed) == 8
    assert listed == {k: v for k, v in pairs.items() if k not in ("s03", "s07")}
    for short_id in ("s03", "s07"):
        with pytest.raises(GoneError):
            storage.find_original_url(short_id)


def test_health_check(storage):
    storage.health_check()

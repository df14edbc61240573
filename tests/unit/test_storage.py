"""
Unit tests for MemoryStorage.

Covers:
    - insert_one / find_original_url (found, NotFound, Gone)
    - live original URL uniqueness (ConflictError carries the existing id)
    - short id uniqueness, including ids of deleted links
    - insert_many atomicity on conflicts
    - soft_delete ownership, idempotence and URL re-use after delete
    - find_urls_by_owner isolation and NotFound on empty
    - owner id parsing and pre-call cancellation
"""

import uuid

import pytest

from shortener.context import Context
from shortener.errors import (
    ConflictError,
    DeadlineExceededError,
    GoneError,
    InvalidInputError,
    NotFoundError,
    ShortIDTakenError,
)
from shortener.storage.storage import MemoryStorage


def test_insert_and_find(storage, owner):
    storage.insert_one(owner, "abcdef", "https://example.com")
    assert storage.find_original_url("abcdef") == "https://example.com"
    assert storage.find_short_id_by_original_url("https://example.com") == "abcdef"


def test_find_missing_is_not_found(storage):
    with pytest.raises(NotFoundError):
        storage.find_original_url("zzz")
    with pytest.raises(NotFoundError):
        storage.find_short_id_by_original_url("https://nowhere.example")


def test_deleted_is_gone_not_found(storage, owner):
    storage.insert_one(owner, "abc", "https://x.com")
    storage.soft_delete(owner, {"abc"})
    with pytest.raises(GoneError):
        storage.find_original_url("abc")
    with pytest.raises(NotFoundError):
        storage.find_original_url("zzz")
    with pytest.raises(NotFoundError):
        storage.find_short_id_by_original_url("https://x.com")


def test_conflict_on_live_original_url(storage, owner, other_owner):
    storage.insert_one(owner, "first1", "https://x.com")
    with pytest.raises(ConflictError) as info:
        storage.insert_one(other_owner, "second", "https://x.com")
    assert info.value.short_id == "first1"
    assert storage.find_short_id_by_original_url("https://x.com") == "first1"
    with pytest.raises(NotFoundError):
        storage.find_original_url("second")


def test_short_id_taken(storage, owner):
    storage.insert_one(owner, "abcdef", "https://one.com")
    with pytest.raises(ShortIDTakenError):
        storage.insert_one(owner, "abcdef", "https://two.com")
    assert storage.find_original_url("abcdef") == "https://one.com"


def test_deleted_short_id_is_never_reused(storage, owner):
    storage.insert_one(owner, "abcdef", "https://one.com")
    storage.soft_delete(owner, ["abcdef"])
    with pytest.raises(ShortIDTakenError):
        storage.insert_one(owner, "abcdef", "https://two.com")


def test_url_can_be_shortened_again_after_delete(storage, owner):
    storage.insert_one(owner, "old111", "https://x.com")
    storage.soft_delete(owner, ["old111"])
    storage.insert_one(owner, "new222", "https://x.com")
    assert storage.find_short_id_by_original_url("https://x.com") == "new222"
    with pytest.raises(GoneError):
        storage.find_original_url("old111")


def test_insert_many_conflict_leaves_nothing(storage, owner):
    storage.insert_one(owner, "taken1", "https://taken.com")
    batch = {"a1": "https://a.com", "b2": "https://taken.com", "c3": "https://c.com"}
    with pytest.raises(ConflictError):
        storage.insert_many(owner, batch)
    for short_id in ("a1", "b2", "c3"):
        with pytest.raises(NotFoundError):
            storage.find_original_url(short_id)


def test_insert_many_duplicate_url_inside_batch(storage, owner):
    with pytest.raises(ConflictError):
        storage.insert_many(owner, {"a1": "https://dup.com", "b2": "https://dup.com"})
    with pytest.raises(NotFoundError):
        storage.find_urls_by_owner(owner)


def test_insert_many_empty_is_noop(storage, owner):
    storage.insert_many(owner, {})
    assert storage.links == {}


def test_soft_delete_skips_other_owners(storage, owner, other_owner):
    storage.insert_one(owner, "mine01", "https://mine.com")
    storage.insert_one(other_owner, "theirs", "https://theirs.com")
    storage.soft_delete(owner, {"mine01", "theirs", "unknown"})
    with pytest.raises(GoneError):
        storage.find_original_url("mine01")
    assert storage.find_original_url("theirs") == "https://theirs.com"


def test_soft_delete_is_idempotent(storage, owner):
    storage.insert_many(owner, {"a1": "https://a.com", "b2": "https://b.com"})
    storage.soft_delete(owner, {"a1"})
    once = storage.find_urls_by_owner(owner)
    storage.soft_delete(owner, {"a1"})
    assert storage.find_urls_by_owner(owner) == once == {"b2": "https://b.com"}


def test_find_urls_by_owner_isolation(storage, owner, other_owner):
    storage.insert_one(owner, "a1", "https://a.com")
    storage.insert_one(other_owner, "b1", "https://b.com")
    storage.insert_one(owner, "a2", "https://a2.com")
    storage.insert_one(other_owner, "b2", "https://b2.com")
    storage.soft_delete(owner, {"a2"})

    assert storage.find_urls_by_owner(owner) == {"a1": "https://a.com"}
    assert storage.find_urls_by_owner(other_owner) == {"b1": "https://b.com", "b2": "https://b2.com"}


def test_find_urls_by_owner_empty_is_not_found(storage, owner):
    with pytest.raises(NotFoundError):
        storage.find_urls_by_owner(owner)


def test_owner_accepts_uuid_instance(storage):
    uid = uuid.uuid4()
    storage.insert_one(uid, "abc", "https://x.com")
    assert storage.find_urls_by_owner(str(uid)) == {"abc": "https://x.com"}


@pytest.mark.parametrize("bad_owner", ["", "not-a-uuid", "1234"])
def test_invalid_owner(storage, bad_owner):
    with pytest.raises(InvalidInputError):
        storage.insert_one(bad_owner, "abc", "https://x.com")
    with pytest.raises(InvalidInputError):
        storage.find_urls_by_owner(bad_owner)
    assert storage.links == {}


def test_cancelled_context_is_checked_before_call(storage, owner):
    ctx = Context()
    ctx.cancel()
    with pytest.raises(DeadlineExceededError):
        storage.insert_one(owner, "abc", "https://x.com", ctx=ctx)
    assert storage.links == {}


def test_expired_context(storage):
    with pytest.raises(DeadlineExceededError):
        storage.find_original_url("abc", ctx=Context(timeout=0))


def test_health_check_always_succeeds():
    assert MemoryStorage().health_check() is None

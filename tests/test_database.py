import asyncio

import pytest

from helpers import FailingStore
from pipbin.database import PasteDatabase
from pipbin.errors import DuplicateUser, PasteNotFound, StorageFailure
from pipbin.models import SshKey


KEY = SshKey(type="ssh-ed25519", fingerprint="SHA256:abc")


def test_paste_ids_are_assigned_in_order(db):
    async def scenario():
        first = await db.create_paste("one", "Python")
        second = await db.create_paste("two", "Go")
        return first, second, await db.get_paste(second.id)

    first, second, loaded = asyncio.run(scenario())
    assert (first.id, second.id) == (1, 2)
    assert loaded == second
    assert loaded.expiry == "never"


def test_missing_paste_is_not_found(db):
    with pytest.raises(PasteNotFound):
        asyncio.run(db.get_paste(42))


def test_user_names_are_unique(db):
    async def scenario():
        await db.create_user("alice", KEY)
        await db.create_user("alice", KEY)

    with pytest.raises(StorageFailure):
        asyncio.run(scenario())


def test_user_round_trip(db):
    async def scenario():
        created = await db.create_user("alice", KEY)
        await db.add_user_paste(created, "1")
        return created, await db.get_user("alice"), await db.get_user("bob")

    created, loaded, missing = asyncio.run(scenario())
    assert loaded == created
    assert loaded.ssh_keys == [KEY]
    assert loaded.pastes == ["1"]
    assert missing is None


def test_read_errors_become_storage_failures():
    db = PasteDatabase(FailingStore(fail_reads=("user:", "paste:")))
    with pytest.raises(StorageFailure):
        asyncio.run(db.get_user("alice"))
    with pytest.raises(StorageFailure):
        asyncio.run(db.get_paste(1))


def test_memory_url_selects_in_memory_store():
    db = asyncio.run(PasteDatabase.connect("memory://"))
    assert db.using_memory
    assert asyncio.run(db.is_healthy())


def test_duplicate_insert_is_reported_as_duplicate_user(db):
    async def scenario():
        await db.create_user("alice", KEY)
        await db.create_user("alice", SshKey(type="ssh-rsa", fingerprint="SHA256:other"))

    with pytest.raises(DuplicateUser):
        asyncio.run(scenario())
    assert asyncio.run(db.get_user("alice")).ssh_keys == [KEY]


def test_failed_user_insert_is_rolled_back():
    store = FailingStore(fail_writes=("user:",))
    with pytest.raises(StorageFailure):
        asyncio.run(PasteDatabase(store).create_user("alice", KEY))
    assert "user:alice" not in store.store

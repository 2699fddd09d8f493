from __future__ import annotations

import asyncio

import pytest

from adapters.sqlite_storage import SQLiteStorage, db_path_from_url


@pytest.fixture()
def storage(tmp_path) -> SQLiteStorage:
    store = SQLiteStorage(str(tmp_path / "parley.db"))
    store.init_db()
    return store


def test_db_path_from_url() -> None:
    assert db_path_from_url("sqlite:///data/parley.db") == "data/parley.db"
    assert db_path_from_url("sqlite:////var/lib/parley.db") == "/var/lib/parley.db"
    assert db_path_from_url("parley.db") == "parley.db"
    with pytest.raises(ValueError):
        db_path_from_url("postgres://localhost/parley")


def test_init_db_is_repeatable(storage: SQLiteStorage) -> None:
    storage.init_db()
    assert storage.recent_ignored(10) == []


def test_ignore_list_round_trip(storage: SQLiteStorage) -> None:
    async def scenario() -> None:
        assert not await storage.exists("42")
        await storage.upsert("42", "admin")
        assert await storage.exists("42")
        assert await storage.delete("42") == 1
        assert await storage.delete("42") == 0
        assert not await storage.exists("42")

    asyncio.run(scenario())


def test_upsert_keeps_original_timestamp(storage: SQLiteStorage) -> None:
    storage.add_ignored("42", "admin")
    first = storage.recent_ignored(1)[0]
    storage.add_ignored("42", "someone")
    second = storage.recent_ignored(1)[0]

    assert second.created_at == first.created_at
    assert second.added_by == "someone"
    assert len(storage.recent_ignored(10)) == 1


def test_list_recent_is_newest_first_and_limited(storage: SQLiteStorage) -> None:
    for chat_id in ["1", "2", "3"]:
        storage.add_ignored(chat_id, "admin")

    entries = asyncio.run(storage.list_recent(2))

    assert [entry.chat_id for entry in entries] == ["3", "2"]


def test_credentials_overwrite_and_delete(storage: SQLiteStorage) -> None:
    assert storage.load_credentials("telegram") is None

    storage.save_credentials("telegram", "first")
    storage.save_credentials("telegram", "second")

    assert storage.load_credentials("telegram") == "second"
    assert storage.delete_credentials("telegram") == 1
    assert storage.load_credentials("telegram") is None

"""Tests for SQLiteStorageAdapter: lifecycle and CRUD for every entity kind."""

import asyncio
from datetime import datetime, timezone

import pytest

from chatstore import (
    Chat,
    ChatStoreConfig,
    ChatUpdate,
    ConstraintError,
    NotOpenError,
    SerializationError,
    SQLiteStorageAdapter,
    StorageConfig,
)
from chatstore.storage.database import engine_supports_returning

from conftest import at, make_chat, make_file, make_message, make_step


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

class TestLifecycle:
    @pytest.mark.asyncio
    async def test_open_and_close(self, db_path):
        adapter = SQLiteStorageAdapter(db_path)
        assert not adapter.is_open
        await adapter.open()
        assert adapter.is_open
        assert db_path.exists()
        await adapter.close()
        assert not adapter.is_open

    @pytest.mark.asyncio
    async def test_open_twice_is_noop(self, storage):
        await storage.add_chat(make_chat())
        await storage.open()
        assert await storage.get_chat_by_id("c1") is not None

    @pytest.mark.asyncio
    async def test_close_twice_is_noop(self, db_path):
        adapter = SQLiteStorageAdapter(db_path)
        await adapter.close()
        await adapter.open()
        await adapter.close()
        await adapter.close()
        assert not adapter.is_open

    @pytest.mark.asyncio
    async def test_reopen_keeps_data(self, db_path):
        adapter = SQLiteStorageAdapter(db_path)
        await adapter.open()
        await adapter.add_chat(make_chat())
        await adapter.close()
        await adapter.open()
        assert (await adapter.get_chat_by_id("c1")).name == "General"
        await adapter.close()

    @pytest.mark.asyncio
    async def test_concurrent_open_and_close(self, db_path):
        adapter = SQLiteStorageAdapter(db_path)
        await asyncio.gather(adapter.open(), adapter.open(), adapter.open())
        assert adapter.is_open
        await asyncio.gather(adapter.close(), adapter.close())
        assert not adapter.is_open

    @pytest.mark.asyncio
    async def test_async_context_manager(self, db_path):
        async with SQLiteStorageAdapter(db_path) as adapter:
            assert adapter.is_open
            await adapter.add_chat(make_chat())
        assert not adapter.is_open

    @pytest.mark.asyncio
    async def test_from_config(self, tmp_path):
        config = ChatStoreConfig(
            storage=StorageConfig(
                db_path=str(tmp_path / "cfg.db"),
                pragmas=["journal_mode = DELETE"],
            )
        )
        adapter = SQLiteStorageAdapter.from_config(config)
        assert adapter.db_path == str(tmp_path / "cfg.db")
        await adapter.open()
        assert adapter.is_open
        await adapter.close()


class TestClosedAdapter:
    """Every operation on a closed adapter fails with NotOpenError."""

    CALLS = [
        ("add_chat", (make_chat(),)),
        ("get_chat_by_id", ("c1",)),
        ("get_chats_by_creator_id", ("u1",)),
        ("count_chats_by_creator_id", ("u1",)),
        ("edit_chat_by_id", ("c1", ChatUpdate(name="x"))),
        ("delete_chat_by_id", ("c1",)),
        ("add_message", (make_message(),)),
        ("get_message_by_id", ("m1",)),
        ("get_messages_by_ids", ([],)),
        ("get_messages_by_chat_id", ("c1",)),
        ("delete_old_messages", (at(0),)),
        ("delete_messages_by_chat_id", ("c1",)),
        ("add_confirmed_step", (make_step(),)),
        ("get_confirmed_steps_by_thread_id", ("t1",)),
        ("delete_old_confirmed_steps", (at(0),)),
        ("add_file", (make_file(),)),
        ("get_file_by_id", ("f1",)),
        ("get_files_by_ids", ([],)),
        ("delete_file_by_id", ("f1",)),
        ("delete_old_files", (at(0),)),
    ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method,args", CALLS, ids=[c[0] for c in CALLS])
    async def test_never_opened(self, db_path, method, args):
        adapter = SQLiteStorageAdapter(db_path)
        with pytest.raises(NotOpenError):
            await getattr(adapter, method)(*args)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method,args", CALLS, ids=[c[0] for c in CALLS])
    async def test_after_close(self, db_path, method, args):
        adapter = SQLiteStorageAdapter(db_path)
        await adapter.open()
        await adapter.close()
        with pytest.raises(NotOpenError):
            await getattr(adapter, method)(*args)


# ---------------------------------------------------------------------------
# Chats
# ---------------------------------------------------------------------------

class TestChats:
    @pytest.mark.asyncio
    async def test_add_and_get(self, storage):
        chat = make_chat()
        await storage.add_chat(chat)
        assert await storage.get_chat_by_id("c1") == chat

    @pytest.mark.asyncio
    async def test_get_missing(self, storage):
        assert await storage.get_chat_by_id("nope") is None

    @pytest.mark.asyncio
    async def test_duplicate_id(self, storage):
        await storage.add_chat(make_chat())
        with pytest.raises(ConstraintError):
            await storage.add_chat(make_chat(name="Other"))
        assert (await storage.get_chat_by_id("c1")).name == "General"

    @pytest.mark.asyncio
    async def test_list_by_creator_paginated(self, storage):
        for i, created in enumerate([10, 30, 20]):
            await storage.add_chat(make_chat(f"c{i}", created=created))
        await storage.add_chat(make_chat("other", creator_id="u2", created=99))

        page = await storage.get_chats_by_creator_id("u1", 0, 2)
        assert [c.id for c in page] == ["c1", "c2"]
        assert await storage.count_chats_by_creator_id("u1") == 3

    @pytest.mark.asyncio
    async def test_list_by_creator_offset(self, storage):
        for i, created in enumerate([10, 30, 20]):
            await storage.add_chat(make_chat(f"c{i}", created=created))
        page = await storage.get_chats_by_creator_id("u1", offset=2)
        assert [c.id for c in page] == ["c0"]

    @pytest.mark.asyncio
    async def test_list_default_limit(self, storage):
        for i in range(55):
            await storage.add_chat(make_chat(f"c{i:02d}", created=i))
        assert len(await storage.get_chats_by_creator_id("u1")) == 50

    @pytest.mark.asyncio
    async def test_count_unknown_creator(self, storage):
        assert await storage.count_chats_by_creator_id("ghost") == 0

    @pytest.mark.asyncio
    async def test_edit_name_only(self, storage):
        original = make_chat(created=5)
        await storage.add_chat(original)
        edited = await storage.edit_chat_by_id("c1", ChatUpdate(name="Renamed"))
        assert edited.name == "Renamed"
        assert edited.creator_id == original.creator_id
        assert edited.created_at == original.created_at
        assert await storage.get_chat_by_id("c1") == edited

    @pytest.mark.asyncio
    async def test_edit_all_fields(self, storage):
        await storage.add_chat(make_chat())
        edited = await storage.edit_chat_by_id(
            "c1", ChatUpdate(name="N", creator_id="u9", created_at=at(42)),
        )
        assert (edited.name, edited.creator_id, edited.created_at) == ("N", "u9", at(42))

    @pytest.mark.asyncio
    async def test_edit_empty_update(self, storage):
        chat = make_chat()
        await storage.add_chat(chat)
        assert ChatUpdate().is_empty()
        assert await storage.edit_chat_by_id("c1", ChatUpdate()) == chat

    @pytest.mark.asyncio
    async def test_edit_missing(self, storage):
        assert await storage.edit_chat_by_id("nope", ChatUpdate(name="x")) is None

    @pytest.mark.asyncio
    async def test_delete_returns_record(self, storage):
        chat = make_chat()
        await storage.add_chat(chat)
        assert await storage.delete_chat_by_id("c1") == chat
        assert await storage.get_chat_by_id("c1") is None
        assert await storage.delete_chat_by_id("c1") is None

    @pytest.mark.asyncio
    async def test_delete_missing(self, storage):
        assert await storage.delete_chat_by_id("nope") is None

    @pytest.mark.asyncio
    async def test_delete_without_returning(self, fallback_storage):
        chat = make_chat()
        await fallback_storage.add_chat(chat)
        assert await fallback_storage.delete_chat_by_id("c1") == chat
        assert await fallback_storage.delete_chat_by_id("c1") is None
        assert await fallback_storage.count_chats_by_creator_id("u1") == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("use_returning", [True, False])
    async def test_delete_undecodable_keeps_row(self, db_path, use_returning):
        if use_returning and not engine_supports_returning():
            pytest.skip("SQLite < 3.35")
        async with SQLiteStorageAdapter(db_path, use_returning=use_returning) as storage:
            await storage.add_chat(make_chat())
            storage._db.execute("UPDATE chats SET createdAt = 'soon' WHERE id = 'c1'")
            with pytest.raises(SerializationError):
                await storage.delete_chat_by_id("c1")
            assert storage._db.fetchone("SELECT COUNT(*) FROM chats")[0] == 1
            assert not storage._db.connection.in_transaction

    @pytest.mark.asyncio
    async def test_out_of_range_timestamp_on_read(self, storage):
        await storage.add_chat(make_chat())
        storage._db.execute("UPDATE chats SET createdAt = 8640000000000000 WHERE id = 'c1'")
        with pytest.raises(SerializationError, match="createdAt"):
            await storage.get_chat_by_id("c1")

    @pytest.mark.asyncio
    async def test_created_at_kept_to_the_millisecond(self, storage):
        created = datetime(2024, 1, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)
        await storage.add_chat(Chat("c1", "General", "u1", created))
        chat = await storage.get_chat_by_id("c1")
        assert chat.created_at == created.replace(microsecond=123000)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

class TestMessages:
    @pytest.mark.asyncio
    async def test_round_trip_minimal(self, storage):
        await storage.add_message(make_message(body={"text": "hello"}))
        msg = await storage.get_message_by_id("m1")
        assert msg.body == {"text": "hello"}
        assert msg.reply_restriction is None

    @pytest.mark.asyncio
    async def test_round_trip_full(self, storage):
        message = make_message(
            reply_to="m0",
            thread_id="t1",
            scene="onboarding",
            step="name",
            body={"type": "text", "content": ["a", 1, None, {"nested": True}]},
            reply_restriction={"bodyType": "text", "senderIDs": ["u2"]},
        )
        await storage.add_message(message)
        assert await storage.get_message_by_id("m1") == message

    @pytest.mark.asyncio
    async def test_empty_restriction_is_kept(self, storage):
        await storage.add_message(make_message(reply_restriction={}))
        assert (await storage.get_message_by_id("m1")).reply_restriction == {}

    @pytest.mark.asyncio
    async def test_get_missing(self, storage):
        assert await storage.get_message_by_id("nope") is None

    @pytest.mark.asyncio
    async def test_duplicate_id(self, storage):
        await storage.add_message(make_message())
        with pytest.raises(ConstraintError):
            await storage.add_message(make_message())

    @pytest.mark.asyncio
    async def test_unserializable_body(self, storage):
        with pytest.raises(SerializationError):
            await storage.add_message(make_message(body={"x": object()}))
        assert await storage.get_message_by_id("m1") is None

    @pytest.mark.asyncio
    async def test_non_finite_body_rejected(self, storage):
        with pytest.raises(SerializationError):
            await storage.add_message(make_message(body={"score": float("nan")}))
        with pytest.raises(SerializationError):
            await storage.add_message(make_message(reply_restriction={"max": float("inf")}))
        assert await storage.get_message_by_id("m1") is None

    @pytest.mark.asyncio
    async def test_naive_created_at_read_back_as_utc(self, storage):
        message = make_message()
        message.created_at = datetime(2024, 1, 1)
        await storage.add_message(message)
        msg = await storage.get_message_by_id("m1")
        assert msg.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_corrupt_body_on_read(self, storage):
        await storage.add_message(make_message())
        storage._db.execute("UPDATE messages SET body = ? WHERE id = ?", ("{oops", "m1"))
        with pytest.raises(SerializationError):
            await storage.get_message_by_id("m1")

    @pytest.mark.asyncio
    async def test_get_by_ids(self, storage):
        for i in range(3):
            await storage.add_message(make_message(f"m{i}", created=i))
        found = await storage.get_messages_by_ids(["m2", "m0", "missing", "m2"])
        assert sorted(m.id for m in found) == ["m0", "m2"]

    @pytest.mark.asyncio
    async def test_get_by_ids_empty_skips_engine(self, storage, monkeypatch):
        def fail(*args, **kwargs):
            raise AssertionError("engine should not be queried")

        monkeypatch.setattr(storage._db, "fetchall", fail)
        monkeypatch.setattr(storage._db, "fetchone", fail)
        assert await storage.get_messages_by_ids([]) == []

    @pytest.mark.asyncio
    async def test_get_by_ids_many(self, storage):
        ids = [f"m{i:04d}" for i in range(1200)]
        for i, message_id in enumerate(ids):
            await storage.add_message(make_message(message_id, created=i))
        found = await storage.get_messages_by_ids(ids)
        assert len(found) == 1200

    @pytest.mark.asyncio
    async def test_by_chat_ordering(self, storage):
        await storage.add_message(make_message("m1", created=5))
        await storage.add_message(make_message("m2", created=5))
        await storage.add_message(make_message("m3", created=1))
        await storage.add_message(make_message("m4", created=9))
        await storage.add_message(make_message("x1", chat_id="c2", created=7))

        found = await storage.get_messages_by_chat_id("c1")
        assert [m.id for m in found] == ["m4", "m2", "m1", "m3"]

    @pytest.mark.asyncio
    async def test_by_chat_pagination(self, storage):
        for i in range(5):
            await storage.add_message(make_message(f"m{i}", created=i))
        page = await storage.get_messages_by_chat_id("c1", offset=1, limit=2)
        assert [m.id for m in page] == ["m3", "m2"]

    @pytest.mark.asyncio
    async def test_by_chat_default_limit(self, storage):
        for i in range(105):
            await storage.add_message(make_message(f"m{i:03d}", created=i))
        assert len(await storage.get_messages_by_chat_id("c1")) == 100

    @pytest.mark.asyncio
    async def test_delete_old(self, storage):
        for i in range(4):
            await storage.add_message(make_message(f"m{i}", created=i))
        assert await storage.delete_old_messages(at(2)) == 2
        remaining = await storage.get_messages_by_chat_id("c1")
        assert sorted(m.id for m in remaining) == ["m2", "m3"]

    @pytest.mark.asyncio
    async def test_delete_by_chat(self, storage):
        await storage.add_message(make_message("m1"))
        await storage.add_message(make_message("m2"))
        await storage.add_message(make_message("x1", chat_id="c2"))
        assert await storage.delete_messages_by_chat_id("c1") == 2
        assert await storage.delete_messages_by_chat_id("c1") == 0
        assert await storage.get_message_by_id("x1") is not None


# ---------------------------------------------------------------------------
# Confirmed steps
# ---------------------------------------------------------------------------

class TestConfirmedSteps:
    @pytest.mark.asyncio
    async def test_add_and_list(self, storage):
        await storage.add_confirmed_step(make_step("s1", created=1))
        await storage.add_confirmed_step(make_step("s2", created=3))
        await storage.add_confirmed_step(make_step("s3", created=2))
        await storage.add_confirmed_step(make_step("other", thread_id="t2"))

        steps = await storage.get_confirmed_steps_by_thread_id("t1")
        assert [s.id for s in steps] == ["s2", "s3", "s1"]
        assert steps[0] == make_step("s2", created=3)

    @pytest.mark.asyncio
    async def test_unknown_thread(self, storage):
        assert await storage.get_confirmed_steps_by_thread_id("nope") == []

    @pytest.mark.asyncio
    async def test_duplicate_id(self, storage):
        await storage.add_confirmed_step(make_step())
        with pytest.raises(ConstraintError):
            await storage.add_confirmed_step(make_step())

    @pytest.mark.asyncio
    async def test_delete_old(self, storage):
        for i in range(3):
            await storage.add_confirmed_step(make_step(f"s{i}", created=i))
        assert await storage.delete_old_confirmed_steps(at(1)) == 1
        assert await storage.delete_old_confirmed_steps(at(1)) == 0
        steps = await storage.get_confirmed_steps_by_thread_id("t1")
        assert [s.id for s in steps] == ["s2", "s1"]


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

class TestFiles:
    @pytest.mark.asyncio
    async def test_add_and_get(self, storage):
        meta = make_file(size=0)
        await storage.add_file(meta)
        assert await storage.get_file_by_id("f1") == meta

    @pytest.mark.asyncio
    async def test_get_missing(self, storage):
        assert await storage.get_file_by_id("nope") is None

    @pytest.mark.asyncio
    async def test_duplicate_id(self, storage):
        await storage.add_file(make_file())
        with pytest.raises(ConstraintError):
            await storage.add_file(make_file())

    @pytest.mark.asyncio
    @pytest.mark.parametrize("size", [-1, 1.5, "10", True, None])
    async def test_invalid_size_rejected(self, storage, size):
        with pytest.raises(ConstraintError, match="size"):
            await storage.add_file(make_file(size=size))
        assert await storage.get_file_by_id("f1") is None
        assert await storage.get_files_by_ids(["f1"]) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("use_returning", [True, False])
    async def test_delete_undecodable_keeps_row(self, db_path, use_returning):
        if use_returning and not engine_supports_returning():
            pytest.skip("SQLite < 3.35")
        async with SQLiteStorageAdapter(db_path, use_returning=use_returning) as storage:
            await storage.add_file(make_file())
            storage._db.execute("UPDATE files SET size = -1 WHERE id = 'f1'")
            with pytest.raises(SerializationError, match="size"):
                await storage.delete_file_by_id("f1")
            assert storage._db.fetchone("SELECT COUNT(*) FROM files")[0] == 1
            assert not storage._db.connection.in_transaction

    @pytest.mark.asyncio
    async def test_get_by_ids(self, storage):
        await storage.add_file(make_file("f1"))
        await storage.add_file(make_file("f2"))
        found = await storage.get_files_by_ids(["f2", "f1", "f3"])
        assert sorted(f.id for f in found) == ["f1", "f2"]

    @pytest.mark.asyncio
    async def test_get_by_ids_empty_skips_engine(self, storage, monkeypatch):
        def fail(*args, **kwargs):
            raise AssertionError("engine should not be queried")

        monkeypatch.setattr(storage._db, "fetchall", fail)
        assert await storage.get_files_by_ids([]) == []

    @pytest.mark.asyncio
    async def test_delete_returns_record(self, storage):
        meta = make_file()
        await storage.add_file(meta)
        assert await storage.delete_file_by_id("f1") == meta
        assert await storage.delete_file_by_id("f1") is None

    @pytest.mark.asyncio
    async def test_delete_without_returning(self, fallback_storage):
        meta = make_file()
        await fallback_storage.add_file(meta)
        assert await fallback_storage.delete_file_by_id("f1") == meta
        assert await fallback_storage.get_file_by_id("f1") is None
        assert await fallback_storage.delete_file_by_id("f1") is None

    @pytest.mark.asyncio
    async def test_delete_old_returns_ids(self, storage):
        for i in range(5):
            await storage.add_file(make_file(f"f{i}", created=i))
        deleted = await storage.delete_old_files(at(3))
        assert sorted(deleted) == ["f0", "f1", "f2"]
        for file_id in deleted:
            assert await storage.get_file_by_id(file_id) is None
        assert await storage.get_file_by_id("f3") is not None
        assert await storage.delete_old_files(at(3)) == []

    @pytest.mark.asyncio
    async def test_delete_old_without_returning(self, fallback_storage):
        for i in range(700):
            await fallback_storage.add_file(make_file(f"f{i:03d}", created=i))
        deleted = await fallback_storage.delete_old_files(at(650))
        assert len(deleted) == 650
        assert sorted(deleted) == [f"f{i:03d}" for i in range(650)]
        remaining = await fallback_storage.get_files_by_ids([f"f{i:03d}" for i in range(700)])
        assert len(remaining) == 50

    @pytest.mark.asyncio
    @pytest.mark.skipif(not engine_supports_returning(), reason="SQLite < 3.35")
    async def test_returning_detected(self, storage):
        assert storage._db.supports_returning

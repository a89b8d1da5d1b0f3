"""Shared fixtures and record factories for chatstore tests."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from chatstore import (
    Chat,
    ConfirmedStep,
    FileMeta,
    Message,
    SQLiteStorageAdapter,
)

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def at(seconds: float) -> datetime:
    """Return BASE_TIME shifted by *seconds* (millisecond precision)."""
    return BASE_TIME + timedelta(milliseconds=int(seconds * 1000))


def make_chat(chat_id="c1", creator_id="u1", created=0, name="General"):
    return Chat(id=chat_id, name=name, creator_id=creator_id, created_at=at(created))


def make_message(message_id="m1", chat_id="c1", created=0, **kwargs):
    kwargs.setdefault("sender_id", "u1")
    kwargs.setdefault("body", {"text": "hello"})
    return Message(id=message_id, chat_id=chat_id, created_at=at(created), **kwargs)


def make_step(step_id="s1", thread_id="t1", created=0, scene="onboarding", step="name"):
    return ConfirmedStep(
        id=step_id,
        thread_id=thread_id,
        message_id="m1",
        scene=scene,
        step=step,
        created_at=at(created),
    )


def make_file(file_id="f1", created=0, size=1024):
    return FileMeta(
        id=file_id,
        name=f"{file_id}.png",
        size=size,
        mime_type="image/png",
        created_at=at(created),
    )


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "chat.db"


@pytest_asyncio.fixture
async def storage(db_path):
    """An open adapter using whatever RETURNING support the engine has."""
    adapter = SQLiteStorageAdapter(db_path)
    await adapter.open()
    yield adapter
    await adapter.close()


@pytest_asyncio.fixture
async def fallback_storage(db_path):
    """An open adapter forced onto the read-then-delete path."""
    adapter = SQLiteStorageAdapter(db_path, use_returning=False)
    await adapter.open()
    yield adapter
    await adapter.close()

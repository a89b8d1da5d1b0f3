# Copyright (c) EGOGE - All Rights Reserved.
# This software may be used and distributed according to the terms of the MIT license.

"""Row <-> record mapping: timestamps, JSON columns and per-table decoders."""

import json
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from chatstore.domain.entities import Chat, ConfirmedStep, FileMeta, Message
from chatstore.domain.exceptions import SerializationError


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


# ------------------------------------------------------------------
# Scalars
# ------------------------------------------------------------------

def to_millis(value: datetime) -> int:
    """Convert a datetime to integer epoch milliseconds. Naive values are UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - _EPOCH) // _ONE_MS


def from_millis(value: int) -> datetime:
    """Convert integer epoch milliseconds to an aware UTC datetime."""
    return _EPOCH + timedelta(milliseconds=value)


def encode_json(value: Any, column: str) -> str:
    """Serialize a structured payload for a JSON column."""
    try:
        return json.dumps(value, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"Cannot serialize {column}: {exc}") from exc


def encode_optional_json(value: Any, column: str) -> Optional[str]:
    if value is None:
        return None
    return encode_json(value, column)


def _decode_json(row: sqlite3.Row, table: str, column: str) -> Any:
    raw = row[column]
    if not isinstance(raw, str):
        raise SerializationError(
            f"{table}.{column} of {row['id']!r} is not text: {type(raw).__name__}"
        )
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise SerializationError(
            f"{table}.{column} of {row['id']!r} is not valid JSON: {exc}"
        ) from exc


def _require_int(row: sqlite3.Row, table: str, column: str) -> int:
    value = row[column]
    if not isinstance(value, int) or isinstance(value, bool):
        raise SerializationError(
            f"{table}.{column} of {row['id']!r} is not an integer: {value!r}"
        )
    return value


def _require_millis(row: sqlite3.Row, table: str, column: str) -> datetime:
    value = _require_int(row, table, column)
    try:
        return from_millis(value)
    except (OverflowError, ValueError) as exc:
        raise SerializationError(
            f"{table}.{column} of {row['id']!r} is out of range: {value}"
        ) from exc


# ------------------------------------------------------------------
# Rows
# ------------------------------------------------------------------

def row_to_chat(row: sqlite3.Row) -> Chat:
    return Chat(
        id=row["id"],
        name=row["name"],
        creator_id=row["creatorID"],
        created_at=_require_millis(row, "chats", "createdAt"),
    )


def row_to_message(row: sqlite3.Row) -> Message:
    restriction = None
    if row["replyRestriction"] is not None:
        restriction = _decode_json(row, "messages", "replyRestriction")
    return Message(
        id=row["id"],
        chat_id=row["chatID"],
        sender_id=row["senderID"],
        body=_decode_json(row, "messages", "body"),
        created_at=_require_millis(row, "messages", "createdAt"),
        reply_to=row["replyTo"],
        thread_id=row["threadID"],
        scene=row["scene"],
        step=row["step"],
        reply_restriction=restriction,
    )


def row_to_confirmed_step(row: sqlite3.Row) -> ConfirmedStep:
    return ConfirmedStep(
        id=row["id"],
        thread_id=row["threadID"],
        message_id=row["messageID"],
        scene=row["scene"],
        step=row["step"],
        created_at=_require_millis(row, "confirmed_steps", "createdAt"),
    )


def row_to_file(row: sqlite3.Row) -> FileMeta:
    size = _require_int(row, "files", "size")
    if size < 0:
        raise SerializationError(f"files.size of {row['id']!r} is negative: {size}")
    return FileMeta(
        id=row["id"],
        name=row["name"],
        size=size,
        mime_type=row["mimeType"],
        created_at=_require_millis(row, "files", "createdAt"),
    )

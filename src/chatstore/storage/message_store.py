# Copyright (c) EGOGE - All Rights Reserved.
# This software may be used and distributed according to the terms of the MIT license.

"""Message CRUD operations."""

import logging
from datetime import datetime
from typing import List, Optional

from chatstore.domain.entities import Message
from .database import Database, chunked, in_placeholders
from .records import encode_json, encode_optional_json, row_to_message, to_millis

logger = logging.getLogger(__name__)


class MessageStore:
    """CRUD operations for messages."""

    def __init__(self, db: Database):
        self.db = db

    def add_message(self, message: Message) -> None:
        """Serialize a Message and store it.

        ``body`` and ``reply_restriction`` are encoded before anything is
        written, so a payload that is not JSON-serializable leaves the table
        untouched.
        """
        body = encode_json(message.body, "body")
        restriction = encode_optional_json(message.reply_restriction, "replyRestriction")
        self.db.execute(
            self.db.statements.add_message,
            (
                message.id,
                message.chat_id,
                message.sender_id,
                message.reply_to,
                message.thread_id,
                message.scene,
                message.step,
                body,
                restriction,
                to_millis(message.created_at),
            ),
        )

    def get_message_by_id(self, message_id: str) -> Optional[Message]:
        row = self.db.fetchone(self.db.statements.get_message_by_id, (message_id,))
        return row_to_message(row) if row else None

    def get_messages_by_ids(self, message_ids: List[str]) -> List[Message]:
        """Fetch several messages at once, in no particular order."""
        if not message_ids:
            return []
        unique_ids = list(dict.fromkeys(message_ids))
        messages = []
        for batch in chunked(unique_ids):
            rows = self.db.fetchall(
                f"SELECT * FROM messages WHERE id IN ({in_placeholders(len(batch))})",
                tuple(batch),
            )
            messages.extend(row_to_message(r) for r in rows)
        return messages

    def get_messages_by_chat_id(
        self, chat_id: str, offset: int = 0, limit: int = 100,
    ) -> List[Message]:
        """Newest first; equal timestamps fall back to id descending."""
        rows = self.db.fetchall(
            self.db.statements.get_messages_by_chat_id, (chat_id, limit, offset),
        )
        return [row_to_message(r) for r in rows]

    def delete_old_messages(self, max_date: datetime) -> int:
        cursor = self.db.execute(
            self.db.statements.delete_old_messages, (to_millis(max_date),),
        )
        logger.debug("Purged %d messages older than %s", cursor.rowcount, max_date)
        return cursor.rowcount

    def delete_messages_by_chat_id(self, chat_id: str) -> int:
        cursor = self.db.execute(
            self.db.statements.delete_messages_by_chat_id, (chat_id,),
        )
        return cursor.rowcount

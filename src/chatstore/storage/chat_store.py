# Copyright (c) EGOGE - All Rights Reserved.
# This software may be used and distributed according to the terms of the MIT license.

"""Chat CRUD operations."""

import logging
from typing import List, Optional

from chatstore.domain.entities import Chat, ChatUpdate
from .database import Database
from .records import row_to_chat, to_millis

logger = logging.getLogger(__name__)


class ChatStore:
    """CRUD operations for chats."""

    def __init__(self, db: Database):
        self.db = db

    def add_chat(self, chat: Chat) -> None:
        """Insert a chat. Raises ConstraintError on a duplicate id."""
        self.db.execute(
            self.db.statements.add_chat,
            (chat.id, chat.name, chat.creator_id, to_millis(chat.created_at)),
        )

    def get_chat_by_id(self, chat_id: str) -> Optional[Chat]:
        row = self.db.fetchone(self.db.statements.get_chat_by_id, (chat_id,))
        return row_to_chat(row) if row else None

    def get_chats_by_creator_id(
        self, creator_id: str, offset: int = 0, limit: int = 50,
    ) -> List[Chat]:
        """List a creator's chats, most recently created first."""
        rows = self.db.fetchall(
            self.db.statements.get_chats_by_creator_id, (creator_id, limit, offset),
        )
        return [row_to_chat(r) for r in rows]

    def count_chats_by_creator_id(self, creator_id: str) -> int:
        row = self.db.fetchone(
            self.db.statements.count_chats_by_creator_id, (creator_id,),
        )
        return row["c"] if row else 0

    def edit_chat_by_id(self, chat_id: str, update: ChatUpdate) -> Optional[Chat]:
        """Update the fields set in *update* and return the stored result."""
        if update.is_empty():
            return self.get_chat_by_id(chat_id)
        created_at = to_millis(update.created_at) if update.created_at is not None else None
        self.db.execute(
            self.db.statements.edit_chat_by_id,
            (update.name, update.creator_id, created_at, chat_id),
        )
        return self.get_chat_by_id(chat_id)

    def delete_chat_by_id(self, chat_id: str) -> Optional[Chat]:
        """Delete a chat and return it as it was before deletion."""
        stmts = self.db.statements
        if stmts.delete_chat_returning is not None:
            with self.db.transaction():
                rows = self.db.fetchall(stmts.delete_chat_returning, (chat_id,))
                return row_to_chat(rows[0]) if rows else None

        logger.debug("Deleting chat %s without RETURNING", chat_id)
        with self.db.transaction():
            row = self.db.fetchone(stmts.get_chat_by_id, (chat_id,))
            if row is None:
                return None
            chat = row_to_chat(row)
            self.db.execute(stmts.delete_chat_by_id, (chat_id,))
        return chat

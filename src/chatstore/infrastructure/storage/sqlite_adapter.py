"""SQLite storage adapter: wraps Database and the per-entity stores to
implement StoragePort.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Union

from chatstore.config import ChatStoreConfig, StorageConfig, get_default_db_path
from chatstore.domain.entities import (
    Chat,
    ChatUpdate,
    ConfirmedStep,
    FileMeta,
    Message,
)
from chatstore.domain.exceptions import NotOpenError
from chatstore.storage.chat_store import ChatStore
from chatstore.storage.database import Database
from chatstore.storage.file_store import FileStore
from chatstore.storage.message_store import MessageStore
from chatstore.storage.step_store import ConfirmedStepStore

logger = logging.getLogger(__name__)


class SQLiteStorageAdapter:
    """Adapter that wraps the SQLite storage classes to satisfy
    :class:`StoragePort`.

    Every coroutine runs its statement synchronously on the calling thread
    and never awaits in between, so concurrent callers cannot observe a
    half-opened or half-closed adapter.

    Args:
        db_path: Path to the SQLite database file. If None, uses the
            default path (~/.chatstore/chat.db).
        pragmas: Tuning directives applied verbatim and in order at open
            time. None or empty uses the defaults (WAL journal, NORMAL
            synchronous, ~2MB cache, 5s busy timeout).
        use_returning: Force DELETE ... RETURNING on or off instead of
            probing the engine at open time.
    """

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        pragmas: Optional[Sequence[str]] = None,
        use_returning: Optional[bool] = None,
    ) -> None:
        if db_path is None:
            db_path = get_default_db_path()
        self._db = Database(db_path, pragmas=pragmas, use_returning=use_returning)
        self._chats = ChatStore(self._db)
        self._messages = MessageStore(self._db)
        self._steps = ConfirmedStepStore(self._db)
        self._files = FileStore(self._db)

    @classmethod
    def from_config(
        cls, config: Union[StorageConfig, ChatStoreConfig]
    ) -> "SQLiteStorageAdapter":
        """Build an adapter from a storage (or full) configuration."""
        if isinstance(config, ChatStoreConfig):
            config = config.storage
        return cls(config.resolved_path(), pragmas=config.pragmas)

    @property
    def db_path(self) -> str:
        return self._db.db_path

    @property
    def is_open(self) -> bool:
        return self._db.is_open

    def _require_open(self) -> None:
        if not self._db.is_open:
            raise NotOpenError(f"Storage is not open: {self._db.db_path}")

    # -- Lifecycle --

    async def open(self) -> None:
        """Open the data file, apply tuning and schema. No-op when open."""
        self._db.open()

    async def close(self) -> None:
        """Close the data file. No-op when closed."""
        self._db.close()

    async def __aenter__(self) -> "SQLiteStorageAdapter":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # -- Chats --

    async def add_chat(self, chat: Chat) -> None:
        """Insert a new chat."""
        self._require_open()
        self._chats.add_chat(chat)

    async def get_chat_by_id(self, chat_id: str) -> Optional[Chat]:
        """Retrieve a chat by ID."""
        self._require_open()
        return self._chats.get_chat_by_id(chat_id)

    async def get_chats_by_creator_id(
        self, creator_id: str, offset: int = 0, limit: int = 50
    ) -> List[Chat]:
        """List a creator's chats, newest first."""
        self._require_open()
        return self._chats.get_chats_by_creator_id(creator_id, offset, limit)

    async def count_chats_by_creator_id(self, creator_id: str) -> int:
        """Count all chats of a creator."""
        self._require_open()
        return self._chats.count_chats_by_creator_id(creator_id)

    async def edit_chat_by_id(
        self, chat_id: str, update: ChatUpdate
    ) -> Optional[Chat]:
        """Apply a partial update and return the updated chat."""
        self._require_open()
        return self._chats.edit_chat_by_id(chat_id, update)

    async def delete_chat_by_id(self, chat_id: str) -> Optional[Chat]:
        """Delete a chat and return it as it was."""
        self._require_open()
        return self._chats.delete_chat_by_id(chat_id)

    # -- Messages --

    async def add_message(self, message: Message) -> None:
        """Insert a new message."""
        self._require_open()
        self._messages.add_message(message)

    async def get_message_by_id(self, message_id: str) -> Optional[Message]:
        """Retrieve a message by ID."""
        self._require_open()
        return self._messages.get_message_by_id(message_id)

    async def get_messages_by_ids(self, message_ids: List[str]) -> List[Message]:
        """Batch lookup of messages."""
        self._require_open()
        return self._messages.get_messages_by_ids(message_ids)

    async def get_messages_by_chat_id(
        self, chat_id: str, offset: int = 0, limit: int = 100
    ) -> List[Message]:
        """List a chat's messages, newest first."""
        self._require_open()
        return self._messages.get_messages_by_chat_id(chat_id, offset, limit)

    async def delete_old_messages(self, max_date: datetime) -> int:
        """Delete messages created before max_date."""
        self._require_open()
        return self._messages.delete_old_messages(max_date)

    async def delete_messages_by_chat_id(self, chat_id: str) -> int:
        """Delete every message of a chat."""
        self._require_open()
        return self._messages.delete_messages_by_chat_id(chat_id)

    # -- Confirmed steps --

    async def add_confirmed_step(self, step: ConfirmedStep) -> None:
        """Append a confirmed step."""
        self._require_open()
        self._steps.add_confirmed_step(step)

    async def get_confirmed_steps_by_thread_id(
        self, thread_id: str
    ) -> List[ConfirmedStep]:
        """List every step of a thread, newest first."""
        self._require_open()
        return self._steps.get_confirmed_steps_by_thread_id(thread_id)

    async def delete_old_confirmed_steps(self, max_date: datetime) -> int:
        """Delete steps created before max_date."""
        self._require_open()
        return self._steps.delete_old_confirmed_steps(max_date)

    # -- Files --

    async def add_file(self, meta: FileMeta) -> None:
        """Insert file metadata."""
        self._require_open()
        self._files.add_file(meta)

    async def get_file_by_id(self, file_id: str) -> Optional[FileMeta]:
        """Retrieve file metadata by ID."""
        self._require_open()
        return self._files.get_file_by_id(file_id)

    async def get_files_by_ids(self, file_ids: List[str]) -> List[FileMeta]:
        """Batch lookup of file metadata."""
        self._require_open()
        return self._files.get_files_by_ids(file_ids)

    async def delete_file_by_id(self, file_id: str) -> Optional[FileMeta]:
        """Delete file metadata and return it as it was."""
        self._require_open()
        return self._files.delete_file_by_id(file_id)

    async def delete_old_files(self, max_date: datetime) -> List[str]:
        """Delete file metadata created before max_date; return the ids."""
        self._require_open()
        ids = self._files.delete_old_files(max_date)
        if ids:
            logger.info("Purged %d file records older than %s", len(ids), max_date)
        return ids

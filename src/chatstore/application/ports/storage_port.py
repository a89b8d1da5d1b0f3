"""Storage port: interface for chat persistence operations.

Any storage backend (SQLite, Postgres, in-memory, etc.) must implement
these Protocols to be usable by the application server. Every operation
is a coroutine so callers can interleave it with other asynchronous work.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol, runtime_checkable

from chatstore.domain.entities import (
    Chat,
    ChatUpdate,
    ConfirmedStep,
    FileMeta,
    Message,
)


@runtime_checkable
class ChatStoragePort(Protocol):
    """Protocol for chat persistence."""

    async def add_chat(self, chat: Chat) -> None:
        """Insert a new chat.

        Raises:
            ConstraintError: A chat with the same id already exists.
        """
        ...

    async def get_chat_by_id(self, chat_id: str) -> Optional[Chat]:
        """Retrieve a chat by ID, or None if not found."""
        ...

    async def get_chats_by_creator_id(
        self, creator_id: str, offset: int = 0, limit: int = 50
    ) -> List[Chat]:
        """List a creator's chats, newest first.

        Args:
            creator_id: Owner of the chats.
            offset: Number of chats to skip.
            limit: Maximum number of chats to return.

        Returns:
            Chats ordered by creation time descending.
        """
        ...

    async def count_chats_by_creator_id(self, creator_id: str) -> int:
        """Count all chats of a creator, ignoring pagination."""
        ...

    async def edit_chat_by_id(
        self, chat_id: str, update: ChatUpdate
    ) -> Optional[Chat]:
        """Apply a partial update and return the updated chat.

        Args:
            chat_id: Chat to update.
            update: Fields to change; ``None`` fields keep their stored value.

        Returns:
            The chat after the update, or None if not found.
        """
        ...

    async def delete_chat_by_id(self, chat_id: str) -> Optional[Chat]:
        """Delete a chat and return it as it was, or None if not found."""
        ...


@runtime_checkable
class MessageStoragePort(Protocol):
    """Protocol for message persistence."""

    async def add_message(self, message: Message) -> None:
        """Insert a new message.

        Raises:
            ConstraintError: A message with the same id already exists.
            SerializationError: body or reply_restriction is not JSON-serializable.
        """
        ...

    async def get_message_by_id(self, message_id: str) -> Optional[Message]:
        """Retrieve a message by ID, or None if not found."""
        ...

    async def get_messages_by_ids(self, message_ids: List[str]) -> List[Message]:
        """Batch lookup. Result order is not guaranteed to match the input."""
        ...

    async def get_messages_by_chat_id(
        self, chat_id: str, offset: int = 0, limit: int = 100
    ) -> List[Message]:
        """List a chat's messages, newest first, ties broken by id descending."""
        ...

    async def delete_old_messages(self, max_date: datetime) -> int:
        """Delete messages created strictly before max_date. Returns the count."""
        ...

    async def delete_messages_by_chat_id(self, chat_id: str) -> int:
        """Delete all messages of a chat. Returns the count."""
        ...


@runtime_checkable
class ConfirmedStepStoragePort(Protocol):
    """Protocol for the append-only confirmed step log."""

    async def add_confirmed_step(self, step: ConfirmedStep) -> None:
        """Append a confirmed step."""
        ...

    async def get_confirmed_steps_by_thread_id(
        self, thread_id: str
    ) -> List[ConfirmedStep]:
        """List every step of a thread, newest first."""
        ...

    async def delete_old_confirmed_steps(self, max_date: datetime) -> int:
        """Delete steps created strictly before max_date. Returns the count."""
        ...


@runtime_checkable
class FileStoragePort(Protocol):
    """Protocol for file metadata persistence."""

    async def add_file(self, meta: FileMeta) -> None:
        """Insert file metadata."""
        ...

    async def get_file_by_id(self, file_id: str) -> Optional[FileMeta]:
        """Retrieve file metadata by ID, or None if not found."""
        ...

    async def get_files_by_ids(self, file_ids: List[str]) -> List[FileMeta]:
        """Batch lookup. Result order is not guaranteed to match the input."""
        ...

    async def delete_file_by_id(self, file_id: str) -> Optional[FileMeta]:
        """Delete file metadata and return it as it was, or None if not found."""
        ...

    async def delete_old_files(self, max_date: datetime) -> List[str]:
        """Delete metadata created strictly before max_date.

        Returns:
            The ids that were deleted, so callers can remove the file
            content stored elsewhere.
        """
        ...


@runtime_checkable
class StoragePort(
    ChatStoragePort,
    MessageStoragePort,
    ConfirmedStepStoragePort,
    FileStoragePort,
    Protocol,
):
    """Full persistence interface expected by the application server."""

    @property
    def is_open(self) -> bool:
        """Whether the backend currently holds an open connection."""
        ...

    async def open(self) -> None:
        """Open the backend. Calling it again while open is a no-op."""
        ...

    async def close(self) -> None:
        """Close the backend. Calling it while closed is a no-op."""
        ...

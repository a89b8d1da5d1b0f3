"""Domain entities: the records persisted by a chatstore adapter.

All entities are plain Python dataclasses with NO external dependencies.
Relationships between them are soft: ``Message.chat_id`` points at a
``Chat.id`` and ``ConfirmedStep.message_id`` at a ``Message.id``, but
nothing enforces either reference.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional


@dataclass
class Chat:
    """A chat owned by a single creator.

    Attributes:
        id: Globally unique, immutable identifier.
        name: Display name.
        creator_id: Identifier of the user who created the chat.
        created_at: Creation time. Stored as epoch milliseconds, so sub-millisecond
            precision is dropped and a naive value is read back as aware UTC.
    """

    id: str
    name: str
    creator_id: str
    created_at: datetime


@dataclass
class ChatUpdate:
    """Partial update for a chat. Fields left as ``None`` keep their stored value."""

    name: Optional[str] = None
    creator_id: Optional[str] = None
    created_at: Optional[datetime] = None

    def is_empty(self) -> bool:
        return self.name is None and self.creator_id is None and self.created_at is None


@dataclass
class Message:
    """A single message posted to a chat.

    Attributes:
        id: Unique message identifier.
        chat_id: Chat the message belongs to.
        sender_id: Identifier of the sender.
        body: Arbitrary JSON-serializable payload. Always present.
        created_at: Creation time, kept at millisecond precision in UTC.
        reply_to: Identifier of the message this one answers.
        thread_id: Workflow thread the message belongs to.
        scene: Workflow scene marker.
        step: Workflow step marker.
        reply_restriction: Optional JSON-serializable constraint on replies.
    """

    id: str
    chat_id: str
    sender_id: str
    body: Any
    created_at: datetime
    reply_to: Optional[str] = None
    thread_id: Optional[str] = None
    scene: Optional[str] = None
    step: Optional[str] = None
    reply_restriction: Optional[Any] = None


@dataclass
class ConfirmedStep:
    """Append-only audit record of a confirmed workflow step."""

    id: str
    thread_id: str
    message_id: str
    scene: str
    step: str
    created_at: datetime


@dataclass
class FileMeta:
    """Metadata of an uploaded file. The bytes themselves live elsewhere.

    Attributes:
        id: Unique file identifier.
        name: Original file name.
        size: Size in bytes (non-negative).
        mime_type: MIME type reported at upload.
        created_at: Upload time.
    """

    id: str
    name: str
    size: int
    mime_type: str
    created_at: datetime

# Copyright (c) EGOGE - All Rights Reserved.
# This software may be used and distributed according to the terms of the MIT license.

"""Persistent storage: chats, messages, confirmed steps and file metadata."""

from .database import Database, DEFAULT_PRAGMAS, Statements, engine_supports_returning
from .chat_store import ChatStore
from .message_store import MessageStore
from .step_store import ConfirmedStepStore
from .file_store import FileStore

__all__ = [
    "Database",
    "DEFAULT_PRAGMAS",
    "Statements",
    "engine_supports_returning",
    "ChatStore",
    "MessageStore",
    "ConfirmedStepStore",
    "FileStore",
]

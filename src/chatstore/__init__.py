"""
chatstore: SQLite persistence for a chat application.

Stores chats, messages, confirmed workflow steps and file metadata in a
single embedded SQLite file behind an asynchronous storage interface.
"""

from .application.ports import StoragePort
from .config import ChatStoreConfig, LoggingConfig, StorageConfig, get_default_db_path
from .domain import (
    Chat,
    ChatUpdate,
    Message,
    ConfirmedStep,
    FileMeta,
    StorageError,
    NotOpenError,
    OpenError,
    ConstraintError,
    BusyError,
    SerializationError,
)
from .infrastructure.storage import SQLiteStorageAdapter
from .storage import DEFAULT_PRAGMAS

__version__ = "0.1.0"

__all__ = [
    # Adapter
    "SQLiteStorageAdapter",
    "StoragePort",
    # Configuration
    "ChatStoreConfig",
    "StorageConfig",
    "LoggingConfig",
    "DEFAULT_PRAGMAS",
    "get_default_db_path",
    # Entities
    "Chat",
    "ChatUpdate",
    "Message",
    "ConfirmedStep",
    "FileMeta",
    # Exceptions
    "StorageError",
    "NotOpenError",
    "OpenError",
    "ConstraintError",
    "BusyError",
    "SerializationError",
]

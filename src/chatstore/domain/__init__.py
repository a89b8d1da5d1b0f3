"""Domain layer: storage records and error kinds with zero external dependencies.

This is the innermost layer. Nothing here imports from application,
storage, infrastructure, or any third-party package.
"""

from .entities import (
    Chat,
    ChatUpdate,
    Message,
    ConfirmedStep,
    FileMeta,
)
from .exceptions import (
    StorageError,
    NotOpenError,
    OpenError,
    ConstraintError,
    BusyError,
    SerializationError,
)

__all__ = [
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

"""Storage exceptions: the failure kinds a storage adapter may raise.

They form a hierarchy rooted at ``StorageError`` and are free of any
engine-specific types. Lookups by identifier never raise; they return
``None`` when nothing matches.
"""


class StorageError(Exception):
    """Base exception for all chatstore storage errors."""


class NotOpenError(StorageError):
    """Raised when an operation is attempted before open() or after close()."""


class OpenError(StorageError):
    """Raised when the data file cannot be opened, created or tuned."""


class ConstraintError(StorageError):
    """Raised when an insert collides with an existing primary identifier."""


class BusyError(StorageError):
    """Raised when a lock is not acquired within the configured busy timeout."""


class SerializationError(StorageError):
    """Raised when a structured-text column cannot be encoded or decoded."""

"""Port interfaces (Protocol classes) for dependency inversion.

Ports define the contracts that infrastructure adapters must satisfy.
They depend only on the domain layer.
"""

from .storage_port import (
    ChatStoragePort,
    MessageStoragePort,
    ConfirmedStepStoragePort,
    FileStoragePort,
    StoragePort,
)

__all__ = [
    "ChatStoragePort",
    "MessageStoragePort",
    "ConfirmedStepStoragePort",
    "FileStoragePort",
    "StoragePort",
]

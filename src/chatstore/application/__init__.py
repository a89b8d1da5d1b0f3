"""Application layer: ports the application server programs against."""

from .ports import StoragePort

__all__ = ["StoragePort"]

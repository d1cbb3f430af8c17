"""
Storage abstraction layer for file operations.

This package provides one interface over path-addressed (local, WebDAV),
object-addressed (S3) and message-addressed (Telegram) backends.
"""

from unidrive.storage.base import (
    BackendType,
    ByteRange,
    OwnerContext,
    StorageBackend,
    StoredFile,
    StoredFolder,
    StoredObject,
    UploadResult,
)
from unidrive.storage.exceptions import (
    BackendError,
    ObjectNotFoundError,
    StreamTruncatedError,
)
from unidrive.storage.local import LocalStorageBackend
from unidrive.storage.registry import StorageRegistry

__all__ = [
    "BackendType",
    "ByteRange",
    "OwnerContext",
    "StorageBackend",
    "StoredFile",
    "StoredFolder",
    "StoredObject",
    "UploadResult",
    "BackendError",
    "ObjectNotFoundError",
    "StreamTruncatedError",
    "LocalStorageBackend",
    "StorageRegistry",
]

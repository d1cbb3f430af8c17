"""
Abstract base class for storage backends.

This module defines the interface that every storage backend implements.
Backends differ in how they address objects:

- path-addressed (local filesystem, WebDAV): ``/<owner>/<folder path>/<name>``
- object-addressed (S3): ``<owner>/<folder path>/<name>``
- message-addressed (Telegram): ``<message_id>:<file_id>``

Callers treat a locator as an opaque string and always route it back to
the backend whose tag is stored on the File row.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import AsyncIterator


class BackendType(str, Enum):
    """Storage backend tags stored on File.storage_type."""

    LOCAL = "local"
    WEBDAV = "webdav"
    S3 = "s3"
    TELEGRAM = "telegram"


@dataclass(frozen=True)
class OwnerContext:
    """Owner id plus the folder names from root to the target folder."""

    owner_id: int
    folder_path: tuple[str, ...] = ()

    def child(self, name: str) -> "OwnerContext":
        return OwnerContext(self.owner_id, self.folder_path + (name,))


@dataclass(frozen=True)
class ByteRange:
    """Inclusive byte range [start, end]."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1


@dataclass(frozen=True)
class UploadResult:
    locator: str
    thumb_locator: str | None = None


@dataclass(frozen=True)
class StoredObject:
    locator: str
    size: int
    modified_at: datetime | None = None


@dataclass(frozen=True)
class StoredFile:
    """What a backend needs to remove one file object."""

    locator: str
    thumb_locator: str | None = None


@dataclass(frozen=True)
class StoredFolder:
    """What a backend needs to remove one folder's directory."""

    owner: OwnerContext


class StorageBackend(ABC):
    """
    Abstract base class for storage backends.

    All storage implementations (local filesystem, WebDAV, S3, Telegram)
    must implement these methods so the rest of the system never needs to
    know which one holds a given object.
    """

    backend_type: BackendType

    @property
    def name(self) -> str:
        return self.backend_type.value

    @abstractmethod
    async def upload(
        self,
        stream: AsyncIterator[bytes],
        name: str,
        mime_type: str,
        owner: OwnerContext,
    ) -> UploadResult:
        """
        Store a new object.

        The stream is consumed fully or the upload fails as a whole: a
        partially written object is removed before the error propagates.

        Args:
            stream: Async iterator yielding file chunks
            name: File name
            mime_type: MIME type of the file
            owner: Owner and folder path the file lives under

        Returns:
            UploadResult with the new locator and optional thumbnail locator

        Raises:
            BackendError: If the backend rejects or fails the write
        """

    @abstractmethod
    def stream(
        self,
        locator: str,
        byte_range: ByteRange | None = None,
    ) -> AsyncIterator[bytes]:
        """
        Stream an object's bytes, optionally limited to an inclusive range.

        Args:
            locator: Object locator returned by upload
            byte_range: Inclusive range, or None for the whole object

        Returns:
            Async iterator yielding chunks

        Raises:
            ObjectNotFoundError: If the object does not exist
            BackendError: If the read fails
        """

    @abstractmethod
    async def remove(self, files: list[StoredFile], folders: list[StoredFolder]) -> None:
        """
        Best-effort removal of file objects and folder directories.

        Each failure is logged and swallowed; this method never raises.
        """

    @abstractmethod
    async def move(self, old_locator: str, new_locator: str) -> bool:
        """
        Relocate an object.

        Returns:
            True when the object moved, False when the backend has no notion
            of relocation and the old locator stays valid.

        Raises:
            BackendError: If the move fails
        """

    @abstractmethod
    def locator_for(self, owner: OwnerContext, name: str) -> str | None:
        """
        Return the locator a file with this name would occupy.

        Returns None for backends that issue their own locators.
        """

    def prefix_for(self, owner: OwnerContext) -> str | None:
        """Return the locator prefix of everything stored under a folder path."""
        return None

    # Keep last: the method name shadows the builtin inside the class body.
    @abstractmethod
    async def list(self, prefix: str) -> list[StoredObject]:
        """
        List every object stored under a locator prefix.

        Raises:
            BackendError: If the listing fails
        """


async def slice_stream(chunks: AsyncIterator[bytes], start: int, length: int) -> AsyncIterator[bytes]:
    """
    Yield ``length`` bytes of a chunk stream beginning at offset ``start``.

    Used when a server ignores a Range header and answers with the full body.
    """
    skip = start
    remaining = length
    async for chunk in chunks:
        if skip:
            if len(chunk) <= skip:
                skip -= len(chunk)
                continue
            chunk = chunk[skip:]
            skip = 0
        if len(chunk) > remaining:
            chunk = chunk[:remaining]
        remaining -= len(chunk)
        if chunk:
            yield chunk
        if remaining <= 0:
            break

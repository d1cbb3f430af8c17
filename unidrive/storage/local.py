"""
Local filesystem storage implementation.

This module provides a path-addressed backend on the local filesystem with
async file operations. Objects live at ``<base_path>/<owner>/<folder
path>/<name>`` so the layout mirrors a WebDAV share one to one.
"""
import errno
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import AsyncIterator

import aiofiles
import aiofiles.os

from unidrive.config import settings
from unidrive.logging_config import setup_logging
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
from unidrive.storage.exceptions import BackendError, ObjectNotFoundError

logger = setup_logging()


def path_locator(owner: OwnerContext, name: str | None = None) -> str:
    """Build a ``/<owner>/<folder path>[/<name>]`` locator."""
    parts = [str(owner.owner_id), *owner.folder_path]
    if name is not None:
        parts.append(name)
    return "/" + "/".join(parts)


class LocalStorageBackend(StorageBackend):
    """
    Local filesystem storage with async operations.

    Uses the same locator shape as WebDAV, so a share exported over WebDAV
    can be served from disk without rewriting metadata.
    """

    backend_type = BackendType.LOCAL

    def __init__(self, base_path: str | None = None, chunk_size: int | None = None):
        """
        Initialize local storage backend.

        Args:
            base_path: Base directory for file storage (default from config)
            chunk_size: Read size for streaming (default from config)
        """
        self.base_path = Path(base_path or settings.STORAGE_BASE_PATH)
        self.chunk_size = chunk_size or settings.STREAM_CHUNK_SIZE

    async def upload(
        self,
        stream: AsyncIterator[bytes],
        name: str,
        mime_type: str,
        owner: OwnerContext,
    ) -> UploadResult:
        """
        Stream file to disk in chunks (async).

        Raises:
            BackendError: If the write fails
        """
        locator = path_locator(owner, name)
        file_path = self._resolve(locator)

        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(file_path, "wb") as f:
                async for chunk in stream:
                    await f.write(chunk)
        except BaseException as e:
            # Clean up partial file on error
            await self._discard(file_path)
            if isinstance(e, OSError):
                raise BackendError(
                    f"Failed to save file: {e}", backend=self.name, locator=locator
                ) from e
            raise

        return UploadResult(locator=locator)

    async def stream(
        self,
        locator: str,
        byte_range: ByteRange | None = None,
    ) -> AsyncIterator[bytes]:
        file_path = self._resolve(locator)
        if not file_path.is_file():
            raise ObjectNotFoundError(locator, backend=self.name)

        remaining = byte_range.length if byte_range else None
        try:
            async with aiofiles.open(file_path, "rb") as f:
                if byte_range:
                    await f.seek(byte_range.start)
                while remaining is None or remaining > 0:
                    size = self.chunk_size if remaining is None else min(self.chunk_size, remaining)
                    chunk = await f.read(size)
                    if not chunk:
                        break
                    if remaining is not None:
                        remaining -= len(chunk)
                    yield chunk
        except OSError as e:
            raise BackendError(
                f"Failed to read file: {e}", backend=self.name, locator=locator
            ) from e

    async def remove(self, files: list[StoredFile], folders: list[StoredFolder]) -> None:
        for item in files:
            for locator in (item.locator, item.thumb_locator):
                if not locator:
                    continue
                try:
                    await aiofiles.os.remove(self._resolve(locator))
                except FileNotFoundError:
                    pass
                except (OSError, BackendError) as e:
                    logger.warning(f"Local remove failed for {locator}: {e}")

        # Deepest directories first; only empty ones go
        for folder in sorted(folders, key=lambda f: len(f.owner.folder_path), reverse=True):
            locator = path_locator(folder.owner)
            try:
                await aiofiles.os.rmdir(self._resolve(locator))
            except FileNotFoundError:
                pass
            except OSError as e:
                if e.errno != errno.ENOTEMPTY:
                    logger.warning(f"Local directory remove failed for {locator}: {e}")
            except BackendError as e:
                logger.warning(f"Local directory remove failed for {locator}: {e}")

    async def move(self, old_locator: str, new_locator: str) -> bool:
        if old_locator == new_locator:
            return True

        source = self._resolve(old_locator)
        destination = self._resolve(new_locator)
        if not source.exists():
            raise ObjectNotFoundError(old_locator, backend=self.name)

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            await aiofiles.os.replace(source, destination)
        except OSError as e:
            raise BackendError(
                f"Failed to move {old_locator} to {new_locator}: {e}",
                backend=self.name,
                locator=old_locator,
            ) from e
        return True

    def locator_for(self, owner: OwnerContext, name: str) -> str:
        return path_locator(owner, name)

    def prefix_for(self, owner: OwnerContext) -> str:
        return path_locator(owner)

    def _resolve(self, locator: str) -> Path:
        """
        Map a locator onto a path under base_path.

        Raises:
            BackendError: If the locator escapes the base directory
        """
        relative = PurePosixPath(locator.lstrip("/"))
        if ".." in relative.parts:
            raise BackendError("Locator escapes storage root", backend=self.name, locator=locator)
        return self.base_path.joinpath(*relative.parts)

    async def _discard(self, file_path: Path) -> None:
        try:
            await aiofiles.os.remove(file_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove partial file {file_path}: {e}")

    async def list(self, prefix: str) -> list[StoredObject]:
        root = self._resolve(prefix)
        if not root.is_dir():
            return []

        objects = []
        for path in sorted(root.rglob("*")):
            if not path.is_file():
                continue
            stat = path.stat()
            relative = path.relative_to(self.base_path).as_posix()
            objects.append(
                StoredObject(
                    locator="/" + relative,
                    size=stat.st_size,
                    modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                )
            )
        return objects

"""
Path resolver.

Turns a start folder plus relative path segments into a folder id,
creating missing folders on the way. Concurrent uploads into the same new
folder must not create it twice, so lookup-or-create for each
(owner, parent, name) key runs under a per-key lock.
"""
import asyncio
import threading
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from unidrive.exceptions import ConflictError
from unidrive.logging_config import setup_logging
from unidrive.models import File, Folder
from unidrive.services.conflicts import free_trashed_name
from unidrive.utils.validators import validate_item_name

logger = setup_logging()


class KeyedLock:
    """asyncio locks created on demand per key and dropped once idle."""

    def __init__(self):
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._holders: dict[Hashable, int] = {}
        self._global_lock = threading.Lock()

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        with self._global_lock:
            lock = self._locks.setdefault(key, asyncio.Lock())
            self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            with self._global_lock:
                self._holders[key] -= 1
                if self._holders[key] == 0:
                    del self._holders[key]
                    del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class PathResolver:
    """Resolves relative folder paths; one instance is shared per process."""

    def __init__(self):
        self._locks = KeyedLock()

    async def resolve(
        self, db: Session, owner_id: int, start_folder_id: int, segments: list[str]
    ) -> int:
        """
        Walk ``segments`` down from ``start_folder_id``, creating missing folders.

        Returns:
            Id of the last folder

        Raises:
            ValidationError: If a segment is not a valid name
            ConflictError: If a live file already uses a segment's name
        """
        current = start_folder_id
        for segment in segments:
            if not segment or not segment.strip():
                continue
            name = validate_item_name(segment)
            async with self._locks.hold((owner_id, current, name)):
                current = self._lookup_or_create(db, owner_id, current, name)
        return current

    def find(
        self, db: Session, owner_id: int, start_folder_id: int, segments: list[str]
    ) -> int | None:
        """Read-only resolve: None as soon as a segment does not exist."""
        current = start_folder_id
        for segment in segments:
            if not segment or not segment.strip():
                continue
            folder = self._live_child(db, owner_id, current, segment.strip())
            if folder is None:
                return None
            current = folder.id
        return current

    def hold_name(self, owner_id: int, folder_id: int, name: str):
        """
        Hold one name inside one folder.

        Shares its keys with folder creation, so a file and a folder can
        never claim the same name concurrently.
        """
        return self._locks.hold((owner_id, folder_id, name))

    @property
    def active_keys(self) -> int:
        return len(self._locks)

    def _live_child(self, db: Session, owner_id: int, parent_id: int, name: str) -> Folder | None:
        return db.scalar(
            select(Folder).where(
                Folder.user_id == owner_id,
                Folder.parent_id == parent_id,
                Folder.name == name,
                Folder.is_deleted.is_(False),
            )
        )

    def _lookup_or_create(self, db: Session, owner_id: int, parent_id: int, name: str) -> int:
        folder = self._live_child(db, owner_id, parent_id, name)
        if folder is not None:
            return folder.id

        clash = db.scalar(
            select(File.id).where(
                File.user_id == owner_id,
                File.folder_id == parent_id,
                File.name == name,
                File.is_deleted.is_(False),
            )
        )
        if clash is not None:
            raise ConflictError(name)

        free_trashed_name(db, owner_id, parent_id, name)
        folder = Folder(name=name, parent_id=parent_id, user_id=owner_id)
        db.add(folder)
        try:
            db.commit()
        except IntegrityError:
            # Created by another process between lookup and insert
            db.rollback()
            folder = self._live_child(db, owner_id, parent_id, name)
            if folder is None:
                raise
            return folder.id

        logger.info(f"Created folder {folder.id} '{name}' under {parent_id} for user {owner_id}")
        return folder.id

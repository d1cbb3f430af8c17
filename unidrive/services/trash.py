"""
Trash and retention.

Trashed items keep their place in the tree until they are restored or
purged. Restore never overwrites live data: a name taken in the meantime
gets the ``_deleted_<timestamp>`` suffix instead.
"""
import asyncio
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from unidrive.exceptions import DriveError
from unidrive.logging_config import setup_logging
from unidrive.models import File, Folder
from unidrive.services.conflicts import deleted_name, find_available_name
from unidrive.services.deletion import DeleteResult, purge
from unidrive.services.folders import (
    find_item_in_folder,
    get_root_folder,
    has_trashed_ancestor,
    owner_context,
)
from unidrive.services.operations import relocate_file, relocate_subtree
from unidrive.storage.registry import StorageRegistry
from unidrive.utils.datetime import utc_now

logger = setup_logging()


@dataclass
class TrashListing:
    folders: list[Folder] = field(default_factory=list)
    files: list[File] = field(default_factory=list)


@dataclass
class RestoreResult:
    restored: int = 0
    renamed: dict[str, str] = field(default_factory=dict)


def list_trash(db: Session, owner_id: int) -> TrashListing:
    """Flat list of trashed items, most recently deleted first."""
    folders = db.scalars(
        select(Folder)
        .where(Folder.user_id == owner_id, Folder.is_deleted.is_(True))
        .order_by(Folder.deleted_at.desc())
    ).all()
    files = db.scalars(
        select(File)
        .where(File.user_id == owner_id, File.is_deleted.is_(True))
        .order_by(File.deleted_at.desc())
    ).all()
    return TrashListing(folders=list(folders), files=list(files))


def _restore_target(db: Session, item: File | Folder, root: Folder) -> Folder:
    parent_id = item.parent_id if isinstance(item, Folder) else item.folder_id
    parent = db.get(Folder, parent_id) if parent_id is not None else None
    if parent is None or has_trashed_ancestor(db, parent):
        return root
    return parent


async def restore(
    db: Session,
    registry: StorageRegistry,
    owner_id: int,
    file_ids: list[int],
    folder_ids: list[int],
) -> RestoreResult:
    """
    Bring trashed items back.

    An item whose parent is still in the trash goes to the root. If its
    name is taken by a live item it is renamed
    ``<name>_deleted_<YYYYMMDDHHMMSS>`` (time of deletion), with ``(n)``
    appended when that is taken too.
    """
    result = RestoreResult()
    root = get_root_folder(db, owner_id)
    if root is None:
        return result

    items: list[File | Folder] = []
    if folder_ids:
        items.extend(
            db.scalars(
                select(Folder).where(
                    Folder.id.in_(folder_ids),
                    Folder.user_id == owner_id,
                    Folder.is_deleted.is_(True),
                )
            )
        )
    if file_ids:
        items.extend(
            db.scalars(
                select(File).where(
                    File.id.in_(file_ids),
                    File.user_id == owner_id,
                    File.is_deleted.is_(True),
                )
            )
        )

    for item in items:
        target = _restore_target(db, item, root)
        is_folder = isinstance(item, Folder)
        original_name = item.name
        name = original_name
        if find_item_in_folder(db, owner_id, target.id, name) is not None:
            name = find_available_name(db, owner_id, target.id, deleted_name(item), is_folder)

        try:
            if is_folder:
                await relocate_subtree(db, registry, item, owner_context(db, target).child(name))
                item.parent_id = target.id
            else:
                try:
                    await relocate_file(db, registry, item, owner_context(db, target), name)
                except DriveError as e:
                    # The old locator still points at the object
                    logger.warning(f"Restored file {item.id} keeps locator {item.locator}: {e}")
                item.folder_id = target.id
            item.name = name
            item.is_deleted = False
            item.deleted_at = None
            db.commit()
        except DriveError as e:
            db.rollback()
            logger.error(f"Could not restore {original_name!r}: {e}")
            continue

        result.restored += 1
        if name != original_name:
            result.renamed[original_name] = name
        logger.info(
            f"Restored {'folder' if is_folder else 'file'} '{original_name}' as '{name}' "
            f"in folder {target.id}"
        )

    return result


async def empty_trash(db: Session, registry: StorageRegistry, owner_id: int) -> DeleteResult:
    """Permanently delete everything in the owner's trash."""
    trash = list_trash(db, owner_id)
    return await purge(db, registry, owner_id, trash.files, trash.folders)


async def cleanup_trash(
    db: Session, registry: StorageRegistry, retention_days: int
) -> DeleteResult:
    """
    Purge every item trashed longer than ``retention_days``, for all owners.

    Returns:
        Counts of trashed files and folders that were past the window
    """
    cutoff = utc_now() - timedelta(days=retention_days)
    expired_files = db.scalars(
        select(File).where(File.is_deleted.is_(True), File.deleted_at < cutoff)
    ).all()
    expired_folders = db.scalars(
        select(Folder).where(Folder.is_deleted.is_(True), Folder.deleted_at < cutoff)
    ).all()

    by_owner: dict[int, tuple[list[File], list[Folder]]] = defaultdict(lambda: ([], []))
    for file in expired_files:
        by_owner[file.user_id][0].append(file)
    for folder in expired_folders:
        by_owner[folder.user_id][1].append(folder)

    result = DeleteResult(files=len(expired_files), folders=len(expired_folders))
    for owner_id, (files, folders) in by_owner.items():
        await purge(db, registry, owner_id, files, folders)

    logger.info(
        f"Trash sweep purged {result.files} files and {result.folders} folders "
        f"older than {retention_days} days"
    )
    return result


class RetentionSweeper:
    """
    Periodic trash purge running as an asyncio task.

    Args:
        session_factory: Callable returning a new Session per sweep
        registry: Backend registry used for removal
        interval_seconds: Seconds between sweeps
        retention_days: Age after which trashed items are purged
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        registry: StorageRegistry,
        interval_seconds: int,
        retention_days: int,
    ):
        self.session_factory = session_factory
        self.registry = registry
        self.interval_seconds = interval_seconds
        self.retention_days = retention_days
        self._task: asyncio.Task[None] | None = None
        self._running = False

    async def start(self) -> None:
        """Start periodic sweeping."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info(
            f"Trash sweeper started (interval: {self.interval_seconds}s, "
            f"retention: {self.retention_days} days)"
        )

    async def stop(self) -> None:
        """Stop periodic sweeping."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Trash sweeper stopped")

    async def sweep_once(self) -> DeleteResult | None:
        db = self.session_factory()
        try:
            return await cleanup_trash(db, self.registry, self.retention_days)
        except Exception as e:
            db.rollback()
            logger.error(f"Error in trash sweep: {e}")
            return None
        finally:
            db.close()

    async def _sweep_loop(self) -> None:
        while self._running:
            await self.sweep_once()
            await asyncio.sleep(self.interval_seconds)

    @property
    def is_running(self) -> bool:
        return self._running

"""
Soft and permanent deletion.

Soft delete only flags rows. Permanent delete collects the whole subtree,
asks each backend to drop its objects (best effort, concurrently per
backend) and then deletes the rows whatever the backends answered: a row
is never kept alive because its object could not be removed.
"""
import asyncio
from collections import defaultdict
from dataclasses import dataclass

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from unidrive.exceptions import DriveError
from unidrive.logging_config import setup_logging
from unidrive.models import File, Folder
from unidrive.services.folders import collect_subtree, owner_context
from unidrive.storage.base import OwnerContext, StorageBackend, StoredFile, StoredFolder
from unidrive.storage.registry import StorageRegistry
from unidrive.utils.datetime import utc_now

logger = setup_logging()


@dataclass
class DeleteResult:
    files: int = 0
    folders: int = 0


def soft_delete(
    db: Session, owner_id: int, file_ids: list[int], folder_ids: list[int]
) -> DeleteResult:
    """
    Move items to the trash.

    Only the named rows are flagged; their descendants stay as they are and
    are hidden through the trashed ancestor. The root folder is never
    trashed.
    """
    now = utc_now()
    result = DeleteResult()
    if file_ids:
        result.files = db.execute(
            update(File)
            .where(File.id.in_(file_ids), File.user_id == owner_id, File.is_deleted.is_(False))
            .values(is_deleted=True, deleted_at=now)
        ).rowcount
    if folder_ids:
        result.folders = db.execute(
            update(Folder)
            .where(
                Folder.id.in_(folder_ids),
                Folder.user_id == owner_id,
                Folder.parent_id.is_not(None),
                Folder.is_deleted.is_(False),
            )
            .values(is_deleted=True, deleted_at=now)
        ).rowcount
    db.commit()
    logger.info(
        f"Moved {result.files} files and {result.folders} folders to trash for user {owner_id}"
    )
    return result


async def _remove_quietly(
    backend: StorageBackend, files: list[StoredFile], folders: list[StoredFolder]
) -> None:
    try:
        await backend.remove(files, folders)
    except Exception as e:
        logger.error(f"Backend {backend.name} failed to remove {len(files)} objects: {e}")


async def purge(
    db: Session,
    registry: StorageRegistry,
    owner_id: int,
    files: list[File],
    folders: list[Folder],
) -> DeleteResult:
    """Permanently delete rows and their objects, including every descendant."""
    subtree = collect_subtree(db, owner_id, [f.id for f in folders if f.parent_id is not None])

    all_files: dict[int, File] = {f.id: f for f in files if f.user_id == owner_id}
    all_files.update((f.id, f) for f in subtree.files)

    # Folder contexts and depths, parents before children
    contexts: dict[int, OwnerContext] = {}
    depths: dict[int, int] = {}
    for folder in subtree.folders:
        if folder.parent_id in contexts:
            contexts[folder.id] = contexts[folder.parent_id].child(folder.name)
            depths[folder.id] = depths[folder.parent_id] + 1
        else:
            contexts[folder.id] = owner_context(db, folder)
            depths[folder.id] = 0

    stored_folders = [StoredFolder(owner=contexts[f.id]) for f in subtree.folders]
    per_backend: dict[str, list[StoredFile]] = defaultdict(list)
    for file in all_files.values():
        per_backend[file.storage_type].append(
            StoredFile(locator=file.locator, thumb_locator=file.thumb_locator)
        )
    if stored_folders and not per_backend:
        # Empty folders may still have directories on the upload backend
        per_backend[registry.default_type.value] = []

    removals = []
    for storage_type, stored_files in per_backend.items():
        try:
            backend = registry.get(storage_type)
        except (DriveError, ValueError) as e:
            logger.error(f"No backend for '{storage_type}', leaving {len(stored_files)} objects: {e}")
            continue
        removals.append(_remove_quietly(backend, stored_files, stored_folders))
    await asyncio.gather(*removals)

    if all_files:
        db.execute(delete(File).where(File.id.in_(list(all_files))))

    by_depth: dict[int, list[int]] = defaultdict(list)
    for folder_id, depth in depths.items():
        by_depth[depth].append(folder_id)
    for depth in sorted(by_depth, reverse=True):
        db.execute(delete(Folder).where(Folder.id.in_(by_depth[depth])))

    db.commit()
    db.expire_all()

    result = DeleteResult(files=len(all_files), folders=len(depths))
    logger.info(
        f"Permanently deleted {result.files} files and {result.folders} folders for user {owner_id}"
    )
    return result


async def unified_delete(
    db: Session,
    registry: StorageRegistry,
    owner_id: int,
    file_ids: list[int],
    folder_ids: list[int],
    permanent: bool = False,
) -> DeleteResult:
    """
    Delete items, softly (to trash) or permanently.

    Permanent deletion accepts live and trashed items alike.
    """
    if not permanent:
        return soft_delete(db, owner_id, file_ids, folder_ids)

    files = list(
        db.scalars(select(File).where(File.id.in_(file_ids), File.user_id == owner_id))
    ) if file_ids else []
    folders = list(
        db.scalars(select(Folder).where(Folder.id.in_(folder_ids), Folder.user_id == owner_id))
    ) if folder_ids else []
    return await purge(db, registry, owner_id, files, folders)


def has_children(db: Session, folder: Folder, include_trashed: bool = True) -> bool:
    """True if anything still lives directly in the folder; trashed rows count unless excluded."""
    folder_query = select(Folder.id).where(Folder.parent_id == folder.id)
    file_query = select(File.id).where(File.folder_id == folder.id)
    if not include_trashed:
        folder_query = folder_query.where(Folder.is_deleted.is_(False))
        file_query = file_query.where(File.is_deleted.is_(False))
    if db.scalar(folder_query.limit(1)) is not None:
        return True
    return db.scalar(file_query.limit(1)) is not None

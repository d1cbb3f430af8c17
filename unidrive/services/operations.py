"""
Move, rename and create orchestration.

Metadata is the source of truth for the tree; backends that derive
locators from paths (local, WebDAV, S3) have their objects moved to match.
Message-addressed backends keep their locators forever.
"""
import posixpath
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from unidrive.exceptions import ConflictError, CycleError, DriveError, NotFoundError, ValidationError
from unidrive.logging_config import setup_logging
from unidrive.models import File, Folder
from unidrive.services.conflicts import (
    ItemType,
    Resolution,
    deleted_name,
    find_available_name,
    free_trashed_name,
)
from unidrive.services.deletion import has_children, purge
from unidrive.services.folders import (
    collect_subtree,
    find_item_in_folder,
    get_file,
    get_folder,
    has_trashed_ancestor,
    is_descendant,
    owner_context,
)
from unidrive.storage.base import OwnerContext, StorageBackend, StoredFolder
from unidrive.storage.registry import StorageRegistry
from unidrive.utils.validators import validate_item_name

logger = setup_logging()


@dataclass
class TransferReport:
    """Outcome of a batch move or upload."""

    moved: int = 0
    skipped: int = 0
    errors: int = 0
    partial: list[str] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)

    def merge(self, other: "TransferReport") -> None:
        self.moved += other.moved
        self.skipped += other.skipped
        self.errors += other.errors
        self.partial.extend(other.partial)
        self.messages.extend(other.messages)

    def error(self, message: str) -> None:
        self.errors += 1
        self.messages.append(message)


def get_item(db: Session, owner_id: int, item_type: ItemType, item_id: int) -> File | Folder:
    if item_type == ItemType.FOLDER:
        return get_folder(db, owner_id, item_id)
    return get_file(db, owner_id, item_id)


def parent_of(item: File | Folder) -> int | None:
    return item.parent_id if isinstance(item, Folder) else item.folder_id


def create_folder(db: Session, owner_id: int, parent_id: int, name: str) -> Folder:
    """
    Create a live folder.

    Raises:
        ValidationError: If the name is invalid
        NotFoundError: If the parent does not exist or is trashed
        ConflictError: If a live sibling already uses the name
    """
    name = validate_item_name(name)
    parent = get_folder(db, owner_id, parent_id)
    if find_item_in_folder(db, owner_id, parent.id, name) is not None:
        raise ConflictError(name)

    free_trashed_name(db, owner_id, parent.id, name)
    folder = Folder(name=name, parent_id=parent.id, user_id=owner_id)
    db.add(folder)
    db.commit()
    db.refresh(folder)
    logger.info(f"Created folder {folder.id} '{name}' in {parent.id} for user {owner_id}")
    return folder


async def release_locator(
    db: Session,
    backend: StorageBackend,
    locator: str,
    exclude_id: int | None = None,
) -> None:
    """
    Make sure no other File row holds ``locator`` before something is written there.

    A trashed (or trash-hidden) holder is moved to the locator its current
    metadata implies, renamed out of the way first if that is the same
    spot.

    Raises:
        ConflictError: If a visible live file holds the locator
        BackendError: If the holder's object cannot be moved
    """
    query = select(File).where(File.storage_type == backend.name, File.locator == locator)
    if exclude_id is not None:
        query = query.where(File.id != exclude_id)
    holder = db.scalar(query)
    if holder is None:
        return

    folder = db.get(Folder, holder.folder_id)
    ctx = owner_context(db, folder)
    target = backend.locator_for(ctx, holder.name)
    if target == locator:
        if not holder.is_deleted and not has_trashed_ancestor(db, folder):
            raise ConflictError(holder.name)
        holder.name = find_available_name(db, holder.user_id, holder.folder_id, deleted_name(holder))
        target = backend.locator_for(ctx, holder.name)

    if target is not None and await backend.move(locator, target):
        holder.locator = target
    db.commit()
    logger.info(f"Moved trashed file {holder.id} from {locator} to {target}")


async def relocate_file(
    db: Session, registry: StorageRegistry, file: File, ctx: OwnerContext, name: str
) -> None:
    """
    Move a file's object to where ``ctx``/``name`` puts it.

    Raises:
        DriveError: If the backend move fails; the row is left untouched
    """
    backend = registry.get(file.storage_type)
    new_locator = backend.locator_for(ctx, name)
    if new_locator is None or new_locator == file.locator:
        return
    await release_locator(db, backend, new_locator, exclude_id=file.id)
    if await backend.move(file.locator, new_locator):
        file.locator = new_locator


async def relocate_subtree(
    db: Session, registry: StorageRegistry, folder: Folder, new_ctx: OwnerContext
) -> bool:
    """
    Move every object below ``folder`` to live under ``new_ctx``.

    A file whose move fails keeps its old, still valid locator and is
    logged; the walk carries on. Old directories are removed only when
    every file moved.

    Returns:
        True if every object moved
    """
    old_root = owner_context(db, folder)
    if old_root == new_ctx:
        return True

    subtree = collect_subtree(db, folder.user_id, [folder.id])
    old_contexts = {folder.id: old_root}
    new_contexts = {folder.id: new_ctx}
    for child in subtree.folders:
        if child.id in new_contexts:
            continue
        old_contexts[child.id] = old_contexts[child.parent_id].child(child.name)
        new_contexts[child.id] = new_contexts[child.parent_id].child(child.name)

    ok = True
    backends: dict[str, StorageBackend] = {}
    for file in subtree.files:
        try:
            backends.setdefault(file.storage_type, registry.get(file.storage_type))
            await relocate_file(db, registry, file, new_contexts[file.folder_id], file.name)
        except DriveError as e:
            ok = False
            logger.warning(f"Could not relocate file {file.id} ({file.locator}): {e}")

    if ok:
        stale = [StoredFolder(owner=ctx) for ctx in old_contexts.values()]
        for backend in backends.values():
            await backend.remove([], stale)
    return ok


async def _transfer(
    db: Session,
    registry: StorageRegistry,
    item: File | Folder,
    destination: Folder,
    name: str,
) -> None:
    """Reparent (and maybe rename) one item, moving its objects along."""
    free_trashed_name(db, item.user_id, destination.id, name)
    dest_ctx = owner_context(db, destination)
    if isinstance(item, Folder):
        await relocate_subtree(db, registry, item, dest_ctx.child(name))
        item.parent_id = destination.id
    else:
        await relocate_file(db, registry, item, dest_ctx, name)
        item.folder_id = destination.id
    item.name = name
    db.commit()


async def move_item(
    db: Session,
    registry: StorageRegistry,
    owner_id: int,
    item_type: ItemType,
    item_id: int,
    destination_id: int,
    resolutions: dict[str, Resolution] | None = None,
    path_prefix: str = "",
) -> TransferReport:
    """
    Move one file or folder into ``destination_id``.

    ``resolutions`` maps relative paths (``<prefix>/<name>``) to what to do
    when the name is taken in the destination. Without one, a conflicting
    item is skipped.

    Raises:
        NotFoundError: If the destination does not exist
        CycleError: If a folder would land inside itself
    """
    resolutions = resolutions or {}
    report = TransferReport()
    destination = get_folder(db, owner_id, destination_id)

    try:
        item = get_item(db, owner_id, item_type, item_id)
    except NotFoundError as e:
        report.error(str(e))
        return report

    if isinstance(item, Folder) and is_descendant(db, destination, item.id):
        raise CycleError(item.id, destination.id)

    if parent_of(item) == destination.id:
        report.skipped += 1
        return report

    relative_path = posixpath.join(path_prefix, item.name)
    existing = find_item_in_folder(db, owner_id, destination.id, item.name)
    action = resolutions.get(relative_path)

    try:
        if existing is None:
            if action in (None, Resolution.RENAME):
                await _transfer(db, registry, item, destination, item.name)
                report.moved += 1
            else:
                report.skipped += 1
            return report

        if action in (None, Resolution.SKIP):
            report.skipped += 1

        elif action == Resolution.RENAME:
            new_name = find_available_name(
                db, owner_id, destination.id, item.name, isinstance(item, Folder)
            )
            await _transfer(db, registry, item, destination, new_name)
            report.moved += 1

        elif action == Resolution.OVERWRITE:
            if isinstance(existing, Folder) and _lives_under(db, item, existing.id):
                report.error(f"'{relative_path}' cannot overwrite a folder that contains it")
                return report
            if isinstance(existing, Folder):
                await purge(db, registry, owner_id, [], [existing])
            else:
                await purge(db, registry, owner_id, [existing], [])
            await _transfer(db, registry, item, destination, item.name)
            report.moved += 1

        elif action == Resolution.MERGE:
            if not isinstance(item, Folder) or not isinstance(existing, Folder):
                report.skipped += 1
                return report
            report.merge(
                await _merge(db, registry, owner_id, item, existing, resolutions, relative_path)
            )

    except DriveError as e:
        db.rollback()
        logger.warning(f"Move of {item_type.value} {item_id} into {destination_id} failed: {e}")
        report.error(f"'{relative_path}': {e}")

    return report


def _lives_under(db: Session, item: File | Folder, folder_id: int) -> bool:
    parent_id = parent_of(item)
    if parent_id is None:
        return False
    return is_descendant(db, db.get(Folder, parent_id), folder_id)


async def _merge(
    db: Session,
    registry: StorageRegistry,
    owner_id: int,
    source: Folder,
    target: Folder,
    resolutions: dict[str, Resolution],
    relative_path: str,
) -> TransferReport:
    """Move every live child of ``source`` into ``target``, recursively."""
    report = TransferReport()
    clean = True

    child_folders = db.scalars(
        select(Folder.id)
        .where(Folder.parent_id == source.id, Folder.is_deleted.is_(False))
        .order_by(Folder.name)
    ).all()
    child_files = db.scalars(
        select(File.id)
        .where(File.folder_id == source.id, File.is_deleted.is_(False))
        .order_by(File.name)
    ).all()
    children = [(ItemType.FOLDER, i) for i in child_folders] + [(ItemType.FILE, i) for i in child_files]

    for child_type, child_id in children:
        child_report = await move_item(
            db, registry, owner_id, child_type, child_id, target.id, resolutions, relative_path
        )
        report.merge(child_report)
        if child_report.skipped or child_report.errors:
            clean = False

    db.refresh(source)
    # Trashed leftovers go with the source
    if clean and not has_children(db, source, include_trashed=False):
        await purge(db, registry, owner_id, [], [source])
        logger.info(f"Merged folder '{relative_path}' into {target.id}")
    else:
        report.partial.append(relative_path)
        logger.info(f"Partially merged folder '{relative_path}' into {target.id}")
    return report


async def move_items(
    db: Session,
    registry: StorageRegistry,
    owner_id: int,
    items: list[tuple[ItemType, int]],
    destination_id: int,
    resolutions: dict[str, Resolution] | None = None,
) -> TransferReport:
    """
    Move a batch of items; one item's failure never stops the others.

    Raises:
        NotFoundError: If the destination does not exist
        CycleError: If any folder would land inside itself; nothing moves
    """
    destination = get_folder(db, owner_id, destination_id)
    for item_type, item_id in items:
        if item_type == ItemType.FOLDER and is_descendant(db, destination, item_id):
            raise CycleError(item_id, destination.id)

    report = TransferReport()
    for item_type, item_id in items:
        report.merge(
            await move_item(db, registry, owner_id, item_type, item_id, destination.id, resolutions)
        )
    return report


async def rename_item(
    db: Session,
    registry: StorageRegistry,
    owner_id: int,
    item_type: ItemType,
    item_id: int,
    new_name: str,
) -> File | Folder:
    """
    Rename a file or folder in place.

    Raises:
        ValidationError: If the name is invalid or the item is the root
        NotFoundError: If the item does not exist
        ConflictError: If a live sibling already uses the name
        BackendError: If a file's object cannot be moved
    """
    name = validate_item_name(new_name)
    item = get_item(db, owner_id, item_type, item_id)
    parent_id = parent_of(item)
    if parent_id is None:
        raise ValidationError("The root folder cannot be renamed")
    if name == item.name:
        return item

    existing = find_item_in_folder(db, owner_id, parent_id, name)
    if existing is not None and existing is not item:
        raise ConflictError(name)

    parent = get_folder(db, owner_id, parent_id, include_deleted=True)
    try:
        await _transfer(db, registry, item, parent, name)
    except DriveError:
        db.rollback()
        raise
    logger.info(f"Renamed {item_type.value} {item.id} to '{name}'")
    return item

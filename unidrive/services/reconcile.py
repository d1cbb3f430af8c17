"""
Reconciliation between a backend and the metadata store.

Backend removal is best-effort, so objects can outlive their rows and rows
can point at objects that are gone. This pass lists what a backend holds
under an owner's prefix and compares it with the File rows of that tag.
"""
import mimetypes
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from unidrive.exceptions import DriveError, NotFoundError
from unidrive.logging_config import setup_logging
from unidrive.models import File, Folder, User
from unidrive.services.folders import find_item_in_folder, get_root_folder
from unidrive.services.paths import PathResolver
from unidrive.storage.base import OwnerContext, StoredObject
from unidrive.storage.registry import StorageRegistry

logger = setup_logging()


@dataclass
class ReconcileReport:
    backend: str
    orphans: list[StoredObject] = field(default_factory=list)
    missing: list[File] = field(default_factory=list)
    imported: list[File] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def _split_under(prefix: str, locator: str) -> list[str] | None:
    """Path segments of ``locator`` below ``prefix``, or None if it lies elsewhere."""
    base = prefix.strip("/")
    rest = locator.strip("/")
    if not rest.startswith(base + "/"):
        return None
    return [part for part in rest[len(base) + 1:].split("/") if part]


async def reconcile(
    db: Session,
    registry: StorageRegistry,
    resolver: PathResolver,
    user: User,
    backend_type: str,
    import_orphans: bool = False,
) -> ReconcileReport:
    """
    Compare a backend's objects with the owner's File rows.

    Args:
        import_orphans: Create File rows for orphan objects at their folder path

    Raises:
        NotFoundError: If the owner has no root folder yet
        BackendError: If the backend listing fails
    """
    backend = registry.get(backend_type)
    report = ReconcileReport(backend=backend.name)
    root = get_root_folder(db, user.id)
    if root is None:
        raise NotFoundError("Folder")

    prefix = backend.prefix_for(OwnerContext(user.id))
    if prefix is None:
        logger.info(f"Backend {backend.name} cannot be listed, nothing to reconcile")
        return report

    objects = await backend.list(prefix)
    rows = db.scalars(
        select(File).where(File.user_id == user.id, File.storage_type == backend.name)
    ).all()

    stored = {obj.locator for obj in objects}
    known = set()
    for row in rows:
        known.add(row.locator)
        if row.thumb_locator:
            known.add(row.thumb_locator)
        if row.locator not in stored:
            report.missing.append(row)

    report.orphans = [obj for obj in objects if obj.locator not in known]
    logger.info(
        f"Reconciled {backend.name} for user {user.id}: {len(report.orphans)} orphans, "
        f"{len(report.missing)} missing"
    )

    if import_orphans:
        for obj in report.orphans:
            await _import_orphan(db, resolver, user, root, prefix, backend.name, obj, report)
    return report


async def _import_orphan(
    db: Session,
    resolver: PathResolver,
    user: User,
    root: Folder,
    prefix: str,
    backend_name: str,
    obj: StoredObject,
    report: ReconcileReport,
) -> None:
    segments = _split_under(prefix, obj.locator)
    if not segments:
        report.skipped.append(obj.locator)
        return

    name = segments.pop()
    try:
        folder_id = await resolver.resolve(db, user.id, root.id, segments)
    except DriveError as e:
        logger.warning(f"Cannot import {obj.locator}: {e}")
        report.skipped.append(obj.locator)
        return

    if find_item_in_folder(db, user.id, folder_id, name) is not None:
        report.skipped.append(obj.locator)
        return

    file = File(
        name=name,
        mime_type=mimetypes.guess_type(name)[0] or "application/octet-stream",
        size=obj.size,
        storage_type=backend_name,
        locator=obj.locator,
        folder_id=folder_id,
        user_id=user.id,
    )
    db.add(file)
    db.commit()
    db.refresh(file)
    report.imported.append(file)
    logger.info(f"Imported orphan {obj.locator} as file {file.id} for user {user.id}")

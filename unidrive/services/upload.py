"""
Multi-file upload pipeline.

Each incoming file is resolved to its target folder, checked against the
live names there, admitted by the quota tracker and streamed to the
owner's backend under the shared concurrency limiter. One file's failure
never affects its siblings.
"""
import asyncio
from dataclasses import dataclass
from typing import AsyncIterator

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from unidrive.exceptions import DriveError
from unidrive.logging_config import setup_logging
from unidrive.models import File, Folder, User
from unidrive.services.conflicts import Resolution, find_available_name, free_trashed_name
from unidrive.services.deletion import purge
from unidrive.services.folders import find_item_in_folder, get_folder, owner_context
from unidrive.services.limiter import ConcurrencyLimiter
from unidrive.services.operations import TransferReport, release_locator
from unidrive.services.paths import PathResolver
from unidrive.services.quota import RequestQuota
from unidrive.storage.base import StoredFile
from unidrive.storage.registry import StorageRegistry
from unidrive.utils.validators import split_relative_path

logger = setup_logging()


@dataclass
class IncomingFile:
    """
    One file of a multi-file upload.

    Attributes:
        relative_path: Path below the target folder, e.g. "Docs/2024/a.txt"
        mime_type: Declared content type
        chunks: Async iterator over the file body
        size: Declared size if the client sent one, used for an early quota check
    """

    relative_path: str
    mime_type: str
    chunks: AsyncIterator[bytes]
    size: int | None = None


@dataclass
class ExistenceCheck:
    name: str
    relative_path: str
    exists: bool
    file_id: int | None = None


async def upload_file(
    db: Session,
    registry: StorageRegistry,
    resolver: PathResolver,
    limiter: ConcurrencyLimiter,
    user: User,
    folder: Folder,
    incoming: IncomingFile,
    quota: RequestQuota,
    action: Resolution | None = None,
) -> File | None:
    """
    Store one file below ``folder``.

    Returns:
        The new File row, or None when the file was skipped

    Raises:
        ValidationError: If the path or name is invalid
        ConflictError: If a folder segment of the path is taken by a file
        QuotaExceededError: If the file does not fit; nothing is stored
        BackendError: If the backend write fails
    """
    segments = split_relative_path(incoming.relative_path)
    name = segments.pop()

    if action == Resolution.SKIP:
        return None

    target_id = await resolver.resolve(db, user.id, folder.id, segments)
    # The name stays held from the existence check until the row commits
    async with resolver.hold_name(user.id, target_id, name):
        return await _store(
            db, registry, limiter, user, target_id, name, incoming, quota, action
        )


async def _store(
    db: Session,
    registry: StorageRegistry,
    limiter: ConcurrencyLimiter,
    user: User,
    target_id: int,
    name: str,
    incoming: IncomingFile,
    quota: RequestQuota,
    action: Resolution | None,
) -> File | None:
    existing = find_item_in_folder(db, user.id, target_id, name)

    if existing is not None:
        if action == Resolution.RENAME:
            name = find_available_name(db, user.id, target_id, name)
        elif action == Resolution.OVERWRITE and isinstance(existing, File):
            freed = existing.size
            await purge(db, registry, user.id, [existing], [])
            quota.used = max(quota.used - freed, 0)
        else:
            return None

    if incoming.size is not None:
        quota.check(incoming.size)

    target = db.get(Folder, target_id)
    free_trashed_name(db, user.id, target_id, name)
    ctx = owner_context(db, target)
    backend = registry.for_upload(user.storage_type)
    locator = backend.locator_for(ctx, name)
    if locator is not None:
        await release_locator(db, backend, locator)

    metered = quota.meter(incoming.chunks)
    try:
        async with limiter:
            result = await backend.upload(metered, name, incoming.mime_type, ctx)
    except BaseException:
        metered.refund()
        raise

    file = File(
        name=name,
        mime_type=incoming.mime_type,
        size=metered.charged,
        storage_type=backend.name,
        locator=result.locator,
        thumb_locator=result.thumb_locator,
        folder_id=target_id,
        user_id=user.id,
    )
    db.add(file)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        metered.refund()
        holder = db.scalar(
            select(File.id).where(
                File.storage_type == backend.name, File.locator == result.locator
            )
        )
        if holder is not None:
            logger.error(
                f"Could not record upload of '{name}'; object {result.locator} "
                f"belongs to file {holder} and is kept"
            )
        else:
            logger.error(f"Could not record upload of '{name}', removing object {result.locator}")
            await backend.remove([StoredFile(result.locator, result.thumb_locator)], [])
        raise

    db.refresh(file)
    logger.info(
        f"Uploaded file {file.id} '{name}' ({file.size} bytes) to {backend.name} "
        f"in folder {target_id} for user {user.id}"
    )
    return file


async def upload_files(
    db: Session,
    registry: StorageRegistry,
    resolver: PathResolver,
    limiter: ConcurrencyLimiter,
    user: User,
    folder_id: int,
    files: list[IncomingFile],
    resolutions: dict[str, Resolution] | None = None,
) -> TransferReport:
    """
    Upload a batch of files into ``folder_id``.

    ``resolutions`` maps relative paths to what to do when the name is
    already taken; without one a conflicting file is skipped. Files run
    concurrently, bounded by ``limiter``.

    Raises:
        NotFoundError: If the target folder does not exist
    """
    resolutions = resolutions or {}
    folder = get_folder(db, user.id, folder_id)
    quota = RequestQuota.for_user(db, user)
    report = TransferReport()

    async def _one(incoming: IncomingFile) -> None:
        try:
            stored = await upload_file(
                db,
                registry,
                resolver,
                limiter,
                user,
                folder,
                incoming,
                quota,
                resolutions.get(incoming.relative_path),
            )
        except DriveError as e:
            logger.warning(f"Upload of '{incoming.relative_path}' failed: {e}")
            report.error(f"'{incoming.relative_path}': {e}")
            return
        except Exception as e:
            logger.error(f"Upload of '{incoming.relative_path}' failed: {e}", exc_info=True)
            report.error(f"'{incoming.relative_path}': upload failed")
            return

        if stored is None:
            report.skipped += 1
        else:
            report.moved += 1

    await asyncio.gather(*(_one(incoming) for incoming in files))
    logger.info(
        f"Upload into folder {folder.id} for user {user.id}: {report.moved} stored, "
        f"{report.skipped} skipped, {report.errors} failed"
    )
    return report


def check_existence(
    db: Session,
    resolver: PathResolver,
    owner_id: int,
    folder_id: int,
    relative_paths: list[str],
) -> list[ExistenceCheck]:
    """Report, per relative path, whether a live file already sits there."""
    folder = get_folder(db, owner_id, folder_id)
    checks = []
    for relative_path in relative_paths:
        parts = [p for p in (relative_path or "").split("/") if p.strip()]
        name = parts.pop() if parts else relative_path
        target_id = resolver.find(db, owner_id, folder.id, parts)
        existing = (
            find_item_in_folder(db, owner_id, target_id, name.strip())
            if target_id is not None and name
            else None
        )
        checks.append(
            ExistenceCheck(
                name=name,
                relative_path=relative_path,
                exists=isinstance(existing, File),
                file_id=existing.id if isinstance(existing, File) else None,
            )
        )
    return checks

"""
Endpoints acting on files and folders alike: rename, move, conflict
pre-check and delete.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from unidrive.database import get_db
from unidrive.dependencies.owner import get_current_owner
from unidrive.dependencies.storage import get_registry
from unidrive.exceptions import NotFoundError
from unidrive.models import Folder, User
from unidrive.schemas.common import APIResponse
from unidrive.schemas.drive import (
    ConflictCheckRequest,
    ConflictData,
    DeleteRequest,
    DeleteResultData,
    FileSummary,
    FolderSummary,
    MoveRequest,
    RenameRequest,
    TransferReportData,
)
from unidrive.services.conflicts import check_conflicts
from unidrive.services.deletion import unified_delete
from unidrive.services.folders import get_folder
from unidrive.services.operations import TransferReport, get_item, move_items, rename_item
from unidrive.storage.registry import StorageRegistry
from unidrive.utils.refs import folder_id_from_handle, item_id, split_refs

router = APIRouter(prefix="/items", tags=["items"])


def _report_data(report: TransferReport) -> TransferReportData:
    return TransferReportData(
        moved=report.moved,
        skipped=report.skipped,
        errors=report.errors,
        partial=report.partial,
        messages=report.messages,
    )


@router.post(
    "/rename",
    response_model=APIResponse[FolderSummary | FileSummary],
    status_code=status.HTTP_200_OK,
)
async def rename_endpoint(
    request: RenameRequest,
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
    registry: StorageRegistry = Depends(get_registry),
):
    item = await rename_item(
        db,
        registry,
        owner.id,
        request.item.type,
        item_id(request.item.type, request.item.id),
        request.name,
    )
    if isinstance(item, Folder):
        return APIResponse(data=FolderSummary.from_folder(item))
    return APIResponse(data=FileSummary.from_file(item))


@router.post(
    "/move",
    response_model=APIResponse[TransferReportData],
    status_code=status.HTTP_200_OK,
)
async def move_endpoint(
    request: MoveRequest,
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
    registry: StorageRegistry = Depends(get_registry),
):
    """
    Move files and folders into a destination folder.

    ``resolutions`` maps relative paths (the item's name, or
    ``<folder>/<child>`` inside a merge) to rename, overwrite, skip or
    merge. A conflicting item without a resolution is skipped.

    Raises:
        CycleError 400: A folder would land inside itself; nothing moved
    """
    destination_id = folder_id_from_handle(request.destination)
    items = []
    report = TransferReport()
    for ref in request.items:
        try:
            items.append((ref.type, item_id(ref.type, ref.id)))
        except NotFoundError as e:
            report.error(str(e))

    report.merge(
        await move_items(db, registry, owner.id, items, destination_id, request.resolutions)
    )
    return APIResponse(data=_report_data(report))


@router.post(
    "/conflicts",
    response_model=APIResponse[ConflictData],
    status_code=status.HTTP_200_OK,
)
def conflicts_endpoint(
    request: ConflictCheckRequest,
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    """Names that already exist in the destination, split into files and merge candidates."""
    destination = get_folder(db, owner.id, folder_id_from_handle(request.destination))
    items = []
    for ref in request.items:
        try:
            items.append(get_item(db, owner.id, ref.type, item_id(ref.type, ref.id)))
        except NotFoundError:
            continue
    conflicts = check_conflicts(db, owner.id, items, destination.id)
    return APIResponse(
        data=ConflictData(
            file_conflicts=conflicts.file_conflicts,
            folder_conflicts=conflicts.folder_conflicts,
        )
    )


@router.post(
    "/delete",
    response_model=APIResponse[DeleteResultData],
    status_code=status.HTTP_200_OK,
)
async def delete_endpoint(
    request: DeleteRequest,
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
    registry: StorageRegistry = Depends(get_registry),
):
    """Move items to the trash, or delete them for good with ``permanent``."""
    file_ids, folder_ids = split_refs(request.items)
    result = await unified_delete(
        db, registry, owner.id, file_ids, folder_ids, permanent=request.permanent
    )
    return APIResponse(data=DeleteResultData(files=result.files, folders=result.folders))

"""Trash endpoints: listing, restore and empty."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from unidrive.database import get_db
from unidrive.dependencies.owner import get_current_owner
from unidrive.dependencies.storage import get_registry
from unidrive.models import User
from unidrive.schemas.common import APIResponse
from unidrive.schemas.drive import (
    DeleteResultData,
    FileSummary,
    FolderSummary,
    ItemListData,
    RestoreRequest,
    RestoreResultData,
)
from unidrive.services.trash import empty_trash, list_trash, restore
from unidrive.storage.registry import StorageRegistry
from unidrive.utils.refs import split_refs

router = APIRouter(prefix="/trash", tags=["trash"])


@router.get(
    "",
    response_model=APIResponse[ItemListData],
    status_code=status.HTTP_200_OK,
)
def get_trash(
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    """Flat list of trashed items, newest deletions first."""
    trash = list_trash(db, owner.id)
    return APIResponse(
        data=ItemListData(
            folders=[FolderSummary.from_folder(f) for f in trash.folders],
            files=[FileSummary.from_file(f) for f in trash.files],
        )
    )


@router.post(
    "/restore",
    response_model=APIResponse[RestoreResultData],
    status_code=status.HTTP_200_OK,
)
async def restore_endpoint(
    request: RestoreRequest,
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
    registry: StorageRegistry = Depends(get_registry),
):
    """
    Restore trashed items.

    ``renamed`` maps original names to the ``_deleted_<timestamp>`` names
    given to items whose name was taken in the meantime.
    """
    file_ids, folder_ids = split_refs(request.items)
    result = await restore(db, registry, owner.id, file_ids, folder_ids)
    return APIResponse(data=RestoreResultData(restored=result.restored, renamed=result.renamed))


@router.post(
    "/empty",
    response_model=APIResponse[DeleteResultData],
    status_code=status.HTTP_200_OK,
)
async def empty_trash_endpoint(
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
    registry: StorageRegistry = Depends(get_registry),
):
    result = await empty_trash(db, registry, owner.id)
    return APIResponse(data=DeleteResultData(files=result.files, folders=result.folders))

"""
Folder endpoints.

Listings, folder creation, the move-target tree and folder locks. Every
folder id in and out of these endpoints is an encrypted handle.
"""
from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.orm import Session

from unidrive.database import get_db
from unidrive.dependencies.owner import get_current_owner
from unidrive.logging_config import setup_logging
from unidrive.models import Folder, User
from unidrive.schemas.common import APIResponse
from unidrive.schemas.drive import (
    Breadcrumb,
    CreateFolderRequest,
    FileSummary,
    FolderListingData,
    FolderPasswordRequest,
    FolderSummary,
    FolderTreeEntry,
)
from unidrive.services.folders import (
    ensure_root_folder,
    get_folder,
    list_all_folders,
    list_folder,
)
from unidrive.services.locks import (
    check_folder_access,
    remove_folder_password,
    set_folder_password,
    verify_folder_password,
)
from unidrive.services.operations import create_folder
from unidrive.utils.handles import encrypt_id
from unidrive.utils.refs import folder_id_from_handle

router = APIRouter(prefix="/folders", tags=["folders"])

logger = setup_logging()


def _listing(db: Session, folder: Folder) -> FolderListingData:
    listing = list_folder(db, folder)
    return FolderListingData(
        folder=FolderSummary.from_folder(folder),
        breadcrumb=[Breadcrumb(id=encrypt_id(f.id), name=f.name) for f in listing.breadcrumb],
        folders=[FolderSummary.from_folder(f) for f in listing.folders],
        files=[FileSummary.from_file(f) for f in listing.files],
    )


@router.get(
    "/root",
    response_model=APIResponse[FolderListingData],
    status_code=status.HTTP_200_OK,
)
def get_root_listing(
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    """List the owner's root folder."""
    root = ensure_root_folder(db, owner)
    return APIResponse(data=_listing(db, root))


@router.get(
    "/tree",
    response_model=APIResponse[list[FolderTreeEntry]],
    status_code=status.HTTP_200_OK,
)
def get_folder_tree(
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    """
    Every live folder, for picking a move target.

    Folders inside the trash are left out; locked folders are included so
    items can still be moved into them.
    """
    folders = list_all_folders(db, owner.id)
    return APIResponse(
        data=[
            FolderTreeEntry(
                id=encrypt_id(f.id),
                name=f.name,
                parent=encrypt_id(f.parent_id) if f.parent_id is not None else None,
            )
            for f in folders
        ]
    )


@router.get(
    "/{handle}",
    response_model=APIResponse[FolderListingData],
    status_code=status.HTTP_200_OK,
)
def get_folder_listing(
    handle: str,
    x_folder_password: str | None = Header(None),
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    """
    List a folder with its breadcrumb.

    A folder below a locked folder needs the lock's password in the
    ``X-Folder-Password`` header.

    Raises:
        NotFoundError 404: Unknown, foreign, trashed or malformed handle
        LockError 403: A locked folder on the path rejects the password
    """
    folder = get_folder(db, owner.id, folder_id_from_handle(handle))
    check_folder_access(db, folder, x_folder_password)
    return APIResponse(data=_listing(db, folder))


@router.post(
    "",
    response_model=APIResponse[FolderSummary],
    status_code=status.HTTP_201_CREATED,
)
def create_folder_endpoint(
    request: CreateFolderRequest,
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    folder = create_folder(db, owner.id, folder_id_from_handle(request.parent), request.name)
    return APIResponse(data=FolderSummary.from_folder(folder))


@router.post(
    "/{handle}/lock",
    response_model=APIResponse[FolderSummary],
    status_code=status.HTTP_200_OK,
)
def lock_folder(
    handle: str,
    request: FolderPasswordRequest,
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    """Set a folder password, or replace it (old_password required)."""
    folder = set_folder_password(
        db, owner.id, folder_id_from_handle(handle), request.password, request.old_password
    )
    return APIResponse(data=FolderSummary.from_folder(folder), message="Folder locked")


@router.post(
    "/{handle}/unlock",
    response_model=APIResponse[FolderSummary],
    status_code=status.HTTP_200_OK,
)
def unlock_folder(
    handle: str,
    request: FolderPasswordRequest,
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    folder = remove_folder_password(db, owner.id, folder_id_from_handle(handle), request.password)
    return APIResponse(data=FolderSummary.from_folder(folder), message="Folder unlocked")


@router.post(
    "/{handle}/verify",
    response_model=APIResponse[bool],
    status_code=status.HTTP_200_OK,
)
def verify_folder(
    handle: str,
    request: FolderPasswordRequest,
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    ok = verify_folder_password(db, owner.id, folder_id_from_handle(handle), request.password)
    if not ok:
        logger.warning(f"Wrong password for folder {handle[:12]}... from user {owner.id}")
    return APIResponse(data=ok)

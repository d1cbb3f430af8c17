"""Share link endpoints."""
from fastapi import APIRouter, Depends, Header, status
from fastapi.responses import Response, StreamingResponse
from sqlalchemy.orm import Session

from unidrive.database import get_db
from unidrive.dependencies.owner import get_current_owner
from unidrive.dependencies.storage import get_registry
from unidrive.exceptions import LockError, NotFoundError
from unidrive.models import File, Folder, User
from unidrive.schemas.common import APIResponse
from unidrive.schemas.drive import (
    CancelShareRequest,
    FileSummary,
    FolderSummary,
    ItemListData,
    ShareData,
    ShareRequest,
)
from unidrive.services.conflicts import ItemType
from unidrive.services.download import open_download
from unidrive.services.folders import list_folder
from unidrive.services.sharing import (
    ShareInfo,
    cancel_share,
    check_share_password,
    create_share_link,
    get_file_by_share_token,
    get_folder_by_share_token,
    list_active_shares,
)
from unidrive.storage.registry import StorageRegistry
from unidrive.utils.handles import encrypt_id
from unidrive.utils.refs import item_id

router = APIRouter(prefix="/shares", tags=["shares"])


def _share_data(share: ShareInfo) -> ShareData:
    outward_id = encrypt_id(share.id) if share.item_type == ItemType.FOLDER else str(share.id)
    return ShareData(
        type=share.item_type,
        id=outward_id,
        name=share.name,
        token=share.token,
        expires_at=share.expires_at,
    )


@router.post(
    "",
    response_model=APIResponse[ShareData],
    status_code=status.HTTP_201_CREATED,
)
def create_share(
    request: ShareRequest,
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    """
    Create (or replace) a share link.

    ``expires_in`` is one of 1h, 3h, 24h, 7d or 0 (never expires);
    ``expires_at`` sets an explicit expiry instead. An optional
    ``password`` protects the link.
    """
    share = create_share_link(
        db,
        owner.id,
        request.item.type,
        item_id(request.item.type, request.item.id),
        expires_in=request.expires_in,
        password=request.password,
        expires_at=request.expires_at,
    )
    return APIResponse(data=_share_data(share))


@router.get(
    "",
    response_model=APIResponse[list[ShareData]],
    status_code=status.HTTP_200_OK,
)
def get_shares(
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    return APIResponse(data=[_share_data(s) for s in list_active_shares(db, owner.id)])


@router.post(
    "/cancel",
    response_model=APIResponse[None],
    status_code=status.HTTP_200_OK,
)
def cancel_share_endpoint(
    request: CancelShareRequest,
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    cancel_share(db, owner.id, request.item.type, item_id(request.item.type, request.item.id))
    return APIResponse(message="Share cancelled")


def _shared_item(db: Session, token: str, password: str | None) -> File | Folder:
    item = get_file_by_share_token(db, token) or get_folder_by_share_token(db, token)
    if item is None:
        raise NotFoundError("Share")
    if not check_share_password(item, password):
        raise LockError("Share password is incorrect")
    return item


@router.get(
    "/public/{token}",
    response_model=APIResponse[ItemListData],
    status_code=status.HTTP_200_OK,
)
def open_share(
    token: str,
    x_share_password: str | None = Header(None),
    db: Session = Depends(get_db),
):
    """
    Public view of a share link; no owner needed.

    A shared file is returned on its own; a shared folder lists its live
    children, leaving out locked subfolders.
    """
    item = _shared_item(db, token, x_share_password)
    if isinstance(item, File):
        return APIResponse(data=ItemListData(folders=[], files=[FileSummary.from_file(item)]))

    if item.is_locked:
        raise LockError("Shared folder is locked")
    listing = list_folder(db, item)
    return APIResponse(
        data=ItemListData(
            folders=[FolderSummary.from_folder(f) for f in listing.folders if not f.is_locked],
            files=[FileSummary.from_file(f) for f in listing.files],
        )
    )


@router.get("/public/{token}/download")
async def download_share(
    token: str,
    range_header: str | None = Header(None, alias="Range"),
    x_share_password: str | None = Header(None),
    db: Session = Depends(get_db),
    registry: StorageRegistry = Depends(get_registry),
):
    item = _shared_item(db, token, x_share_password)
    if not isinstance(item, File):
        raise NotFoundError("File")

    plan = await open_download(item, registry, range_header)
    if plan.body is None:
        return Response(status_code=plan.status, headers=plan.headers)
    return StreamingResponse(plan.body, status_code=plan.status, headers=plan.headers)

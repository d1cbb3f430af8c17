from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from unidrive.database import get_db
from unidrive.dependencies.owner import get_current_owner
from unidrive.models import User
from unidrive.schemas.common import APIResponse
from unidrive.schemas.drive import FileSummary, FolderSummary, ItemListData, QuotaData
from unidrive.services.quota import quota_summary
from unidrive.services.search import search_items

router = APIRouter(tags=["quota"])


@router.get(
    "/quota",
    response_model=APIResponse[QuotaData],
    status_code=status.HTTP_200_OK,
)
def get_quota(
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    """Bytes allowed (0 = unlimited) and bytes used, trash included."""
    summary = quota_summary(db, owner)
    return APIResponse(data=QuotaData(max=summary.max, used=summary.used))


@router.get(
    "/search",
    response_model=APIResponse[ItemListData],
    status_code=status.HTTP_200_OK,
)
def search(
    q: str = Query(..., min_length=1, description="Substring to look for in names"),
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    result = search_items(db, owner.id, q)
    return APIResponse(
        data=ItemListData(
            folders=[FolderSummary.from_folder(f) for f in result.folders],
            files=[FileSummary.from_file(f) for f in result.files],
        )
    )

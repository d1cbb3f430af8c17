from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from unidrive.database import get_db
from unidrive.dependencies.owner import get_current_owner
from unidrive.dependencies.storage import get_path_resolver, get_registry
from unidrive.models import User
from unidrive.schemas.common import APIResponse
from unidrive.schemas.drive import FileSummary, ReconcileData, ReconcileRequest, StoredObjectData
from unidrive.services.paths import PathResolver
from unidrive.services.reconcile import reconcile
from unidrive.storage.registry import StorageRegistry

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post(
    "/reconcile",
    response_model=APIResponse[ReconcileData],
    status_code=status.HTTP_200_OK,
)
async def reconcile_endpoint(
    request: ReconcileRequest,
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
    registry: StorageRegistry = Depends(get_registry),
    resolver: PathResolver = Depends(get_path_resolver),
):
    """
    Compare a backend's objects under the owner's prefix with the owner's
    File rows.

    Returns orphan objects (no row) and missing objects (row without
    object). With ``import_orphans`` the orphans become files at the
    folder path their locator implies.
    """
    backend_type = request.backend or owner.storage_type or registry.default_type
    report = await reconcile(
        db, registry, resolver, owner, backend_type, import_orphans=request.import_orphans
    )
    return APIResponse(
        data=ReconcileData(
            backend=report.backend,
            orphans=[
                StoredObjectData(locator=o.locator, size=o.size, modified_at=o.modified_at)
                for o in report.orphans
            ],
            missing=[FileSummary.from_file(f) for f in report.missing],
            imported=[FileSummary.from_file(f) for f in report.imported],
            skipped=report.skipped,
        )
    )

"""
File endpoints.

Multi-file upload, existence checks before upload, file info and the
streaming download proxy.
"""
import json

from fastapi import APIRouter, Depends, File, Form, Header, Query, UploadFile, status
from fastapi.responses import Response, StreamingResponse
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from unidrive.config import settings
from unidrive.database import get_db
from unidrive.dependencies.owner import get_current_owner
from unidrive.dependencies.storage import get_path_resolver, get_registry, get_upload_limiter
from unidrive.exceptions import ValidationError
from unidrive.logging_config import setup_logging
from unidrive.models import User
from unidrive.schemas.common import APIResponse
from unidrive.schemas.drive import ExistenceData, ExistenceRequest, FileInfo, TransferReportData
from unidrive.services.conflicts import Resolution
from unidrive.services.download import open_download
from unidrive.services.folders import get_file
from unidrive.services.limiter import ConcurrencyLimiter
from unidrive.services.locks import check_file_access
from unidrive.services.paths import PathResolver
from unidrive.services.upload import IncomingFile, check_existence, upload_files
from unidrive.storage.registry import StorageRegistry
from unidrive.utils.refs import file_id_from_str, folder_id_from_handle

router = APIRouter(prefix="/files", tags=["files"])

logger = setup_logging()

_resolutions_adapter = TypeAdapter(dict[str, Resolution])


def _parse_resolutions(raw: str | None) -> dict[str, Resolution]:
    if not raw:
        return {}
    try:
        return _resolutions_adapter.validate_python(json.loads(raw))
    except (json.JSONDecodeError, PydanticValidationError) as e:
        raise ValidationError(f"Invalid resolutions: {e}") from e


async def _read_chunks(upload: UploadFile):
    while True:
        chunk = await upload.read(settings.STREAM_CHUNK_SIZE)
        if not chunk:
            break
        yield chunk


@router.post(
    "/upload",
    response_model=APIResponse[TransferReportData],
    status_code=status.HTTP_200_OK,
)
async def upload_endpoint(
    files: list[UploadFile] = File(...),
    folder: str = Form(...),
    resolutions: str | None = Form(None),
    paths: list[str] | None = Form(None),
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
    registry: StorageRegistry = Depends(get_registry),
    resolver: PathResolver = Depends(get_path_resolver),
    limiter: ConcurrencyLimiter = Depends(get_upload_limiter),
):
    """
    Upload one or more files into a folder.

    Form fields:
    - ``files``: the file parts
    - ``folder``: target folder handle
    - ``paths``: optional relative path per file part ("Docs/2024/a.txt");
      missing folders are created. Defaults to each part's filename.
    - ``resolutions``: JSON object mapping relative paths to
      rename / overwrite / skip for names already taken

    Returns:
        APIResponse with counts of stored (``moved``), skipped and failed files
    """
    folder_id = folder_id_from_handle(folder)
    plan = _parse_resolutions(resolutions)
    if paths is not None and len(paths) != len(files):
        raise ValidationError("paths must list one relative path per file")

    incoming = [
        IncomingFile(
            relative_path=paths[i] if paths is not None else (upload.filename or ""),
            mime_type=upload.content_type or "application/octet-stream",
            chunks=_read_chunks(upload),
            size=upload.size,
        )
        for i, upload in enumerate(files)
    ]
    report = await upload_files(
        db, registry, resolver, limiter, owner, folder_id, incoming, plan
    )

    message = None
    if incoming and report.skipped == len(incoming):
        message = "All files were skipped because of name conflicts"
    return APIResponse(
        data=TransferReportData(
            moved=report.moved,
            skipped=report.skipped,
            errors=report.errors,
            partial=report.partial,
            messages=report.messages,
        ),
        message=message,
    )


@router.post(
    "/check-existence",
    response_model=APIResponse[list[ExistenceData]],
    status_code=status.HTTP_200_OK,
)
def check_existence_endpoint(
    request: ExistenceRequest,
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
    resolver: PathResolver = Depends(get_path_resolver),
):
    """Tell the client which relative paths would collide before it uploads."""
    checks = check_existence(
        db, resolver, owner.id, folder_id_from_handle(request.folder), request.files
    )
    return APIResponse(
        data=[
            ExistenceData(
                name=c.name,
                relative_path=c.relative_path,
                exists=c.exists,
                file_id=str(c.file_id) if c.file_id is not None else None,
            )
            for c in checks
        ]
    )


@router.get(
    "/{file_id}",
    response_model=APIResponse[FileInfo],
    status_code=status.HTTP_200_OK,
)
def get_file_info(
    file_id: str,
    x_folder_password: str | None = Header(None),
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    file = get_file(db, owner.id, file_id_from_str(file_id))
    check_file_access(db, file, x_folder_password)
    return APIResponse(data=FileInfo.from_file(file))


@router.get("/{file_id}/download")
async def download_file(
    file_id: str,
    inline: bool = Query(False, description="Serve with Content-Disposition: inline"),
    range_header: str | None = Header(None, alias="Range"),
    x_folder_password: str | None = Header(None),
    owner: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
    registry: StorageRegistry = Depends(get_registry),
):
    """
    Stream a file from its backend.

    Honours a single ``Range`` header (206 / 416). The body carries exactly
    Content-Length bytes or the connection is aborted.
    """
    file = get_file(db, owner.id, file_id_from_str(file_id))
    check_file_access(db, file, x_folder_password)

    plan = await open_download(file, registry, range_header, "inline" if inline else "attachment")
    if plan.body is None:
        return Response(status_code=plan.status, headers=plan.headers)
    return StreamingResponse(plan.body, status_code=plan.status, headers=plan.headers)

"""
Schemas for the drive endpoints.

Folder ids always travel as encrypted handles. File ids are 63-bit
integers and travel as strings so JavaScript clients keep every digit.
"""
from datetime import datetime

from pydantic import BaseModel, Field

from unidrive.models import File, Folder
from unidrive.services.conflicts import ItemType, Resolution
from unidrive.utils.handles import encrypt_id


class ItemRef(BaseModel):
    """A file (id as string) or a folder (handle)."""

    type: ItemType
    id: str


class FolderSummary(BaseModel):
    id: str
    name: str
    is_locked: bool = False
    deleted_at: datetime | None = None

    @classmethod
    def from_folder(cls, folder: Folder) -> "FolderSummary":
        return cls(
            id=encrypt_id(folder.id),
            name=folder.name,
            is_locked=folder.is_locked,
            deleted_at=folder.deleted_at,
        )


class FileSummary(BaseModel):
    id: str
    name: str
    mime: str
    size: int
    date: datetime | None = None
    deleted_at: datetime | None = None

    @classmethod
    def from_file(cls, file: File) -> "FileSummary":
        return cls(
            id=str(file.id),
            name=file.name,
            mime=file.mime_type,
            size=file.size,
            date=file.created_at,
            deleted_at=file.deleted_at,
        )


class FileInfo(FileSummary):
    folder: str
    storage_type: str

    @classmethod
    def from_file(cls, file: File) -> "FileInfo":
        summary = FileSummary.from_file(file)
        return cls(
            **summary.model_dump(),
            folder=encrypt_id(file.folder_id),
            storage_type=file.storage_type,
        )


class Breadcrumb(BaseModel):
    id: str
    name: str


class FolderListingData(BaseModel):
    folder: FolderSummary
    breadcrumb: list[Breadcrumb]
    folders: list[FolderSummary]
    files: list[FileSummary]


class FolderTreeEntry(BaseModel):
    id: str
    name: str
    parent: str | None


class ItemListData(BaseModel):
    """Folders and files without a containing folder (trash, search)."""

    folders: list[FolderSummary]
    files: list[FileSummary]


class CreateFolderRequest(BaseModel):
    parent: str
    name: str


class FolderPasswordRequest(BaseModel):
    password: str
    old_password: str | None = None


class RenameRequest(BaseModel):
    item: ItemRef
    name: str


class MoveRequest(BaseModel):
    items: list[ItemRef] = Field(min_length=1)
    destination: str
    resolutions: dict[str, Resolution] = Field(default_factory=dict)


class ConflictCheckRequest(BaseModel):
    items: list[ItemRef] = Field(min_length=1)
    destination: str


class ConflictData(BaseModel):
    file_conflicts: list[str]
    folder_conflicts: list[str]


class DeleteRequest(BaseModel):
    items: list[ItemRef] = Field(min_length=1)
    permanent: bool = False


class DeleteResultData(BaseModel):
    files: int
    folders: int


class RestoreRequest(BaseModel):
    items: list[ItemRef] = Field(min_length=1)


class RestoreResultData(BaseModel):
    restored: int
    renamed: dict[str, str]


class TransferReportData(BaseModel):
    moved: int
    skipped: int
    errors: int
    partial: list[str] = Field(default_factory=list)
    messages: list[str] = Field(default_factory=list)


class ExistenceRequest(BaseModel):
    folder: str
    files: list[str]


class ExistenceData(BaseModel):
    name: str
    relative_path: str
    exists: bool
    file_id: str | None = None


class QuotaData(BaseModel):
    max: int
    used: int


class ShareRequest(BaseModel):
    item: ItemRef
    expires_in: str | None = "24h"
    """One of 1h, 3h, 24h, 7d or 0 (never)"""

    expires_at: datetime | None = None
    """Explicit expiry; overrides expires_in"""

    password: str | None = None


class CancelShareRequest(BaseModel):
    item: ItemRef


class ShareData(BaseModel):
    type: ItemType
    id: str
    name: str
    token: str
    expires_at: datetime | None


class ReconcileRequest(BaseModel):
    backend: str | None = None
    """Backend tag; defaults to the configured upload backend"""

    import_orphans: bool = False


class StoredObjectData(BaseModel):
    locator: str
    size: int
    modified_at: datetime | None = None


class ReconcileData(BaseModel):
    backend: str
    orphans: list[StoredObjectData]
    missing: list[FileSummary]
    imported: list[FileSummary]
    skipped: list[str]

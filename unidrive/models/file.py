"""
File database model.

A File row owns exactly one physical object, addressed by its locator on
the backend named in storage_type.
"""
from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from unidrive.database import Base
from unidrive.utils.datetime import utc_now
from unidrive.utils.ids import generate_file_id


class File(Base):
    """
    File model.

    Attributes:
        id: Large random id, stable for the file's lifetime
        name: File name, unique among live siblings (files and folders)
        mime_type: Content type recorded at upload
        size: Size in bytes
        storage_type: Backend tag (local, webdav, s3, telegram)
        locator: Backend-specific object address
        thumb_locator: Optional thumbnail object address
        folder_id: Parent folder
        user_id: Owner
        is_deleted: Soft-delete flag
        deleted_at: When the file was moved to trash
    """

    __tablename__ = "files"

    id: Mapped[int] = mapped_column(
        BigInteger, primary_key=True, autoincrement=False, default=generate_file_id
    )
    name: Mapped[str] = mapped_column(String(255))
    mime_type: Mapped[str] = mapped_column(String(255), default="application/octet-stream")
    size: Mapped[int] = mapped_column(BigInteger, default=0)
    storage_type: Mapped[str] = mapped_column(String(20))
    locator: Mapped[str] = mapped_column(String(1024))
    thumb_locator: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    folder_id: Mapped[int] = mapped_column(ForeignKey("folders.id"), index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    share_token: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    share_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    share_password: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "uq_files_live_name",
            "user_id",
            "folder_id",
            "name",
            unique=True,
            sqlite_where=text("NOT is_deleted"),
            postgresql_where=text("NOT is_deleted"),
        ),
    )

    def __repr__(self) -> str:
        return f"<File(id={self.id}, name={self.name}, folder_id={self.folder_id})>"

"""
Folder database model.

Folders form one tree per owner through parent_id. The root folder is the
only row with a NULL parent. Soft-deleted folders keep their place in the
tree so they can be restored.
"""
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from unidrive.database import Base
from unidrive.utils.datetime import utc_now


class Folder(Base):
    """
    Folder model.

    Attributes:
        id: Primary key (exposed to clients only as an encrypted handle)
        name: Folder name, unique among live siblings
        parent_id: Parent folder (NULL for the owner's root)
        user_id: Owner
        password: bcrypt hash when the folder is locked
        share_token: Public share token
        share_expires_at: Share expiry (NULL = never)
        share_password: bcrypt hash protecting the share link
        is_deleted: Soft-delete flag
        deleted_at: When the folder was moved to trash
    """

    __tablename__ = "folders"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255))
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("folders.id"), nullable=True, index=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    password: Mapped[str | None] = mapped_column(String(255), nullable=True)
    share_token: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    share_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    share_password: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    __table_args__ = (
        Index(
            "uq_folders_live_name",
            "user_id",
            "parent_id",
            "name",
            unique=True,
            sqlite_where=text("NOT is_deleted"),
            postgresql_where=text("NOT is_deleted"),
        ),
    )

    @property
    def is_locked(self) -> bool:
        return self.password is not None

    def __repr__(self) -> str:
        return f"<Folder(id={self.id}, name={self.name}, parent_id={self.parent_id})>"

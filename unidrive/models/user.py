from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from unidrive.config import settings
from unidrive.database import Base
from unidrive.utils.datetime import utc_now


class User(Base):
    """
    Owner of a drive namespace.

    Attributes:
        id: Primary key
        username: Unique login name supplied by the external auth layer
        max_storage_bytes: Quota in bytes (0 = unlimited)
        storage_type: Backend tag used for new uploads (None = configured default)
        created_at: Creation timestamp
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    max_storage_bytes: Mapped[int] = mapped_column(
        BigInteger, default=lambda: settings.DEFAULT_MAX_STORAGE_BYTES
    )
    storage_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username})>"

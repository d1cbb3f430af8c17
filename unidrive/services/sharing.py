"""
Share links.

A file or folder can carry one public token with an optional expiry and
an optional bcrypt password. Expired tokens resolve to nothing.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from unidrive.exceptions import ValidationError
from unidrive.logging_config import setup_logging
from unidrive.models import File, Folder
from unidrive.services.conflicts import ItemType
from unidrive.services.folders import get_file, get_folder, has_trashed_ancestor
from unidrive.services.passwords import hash_password, verify_password
from unidrive.utils.datetime import ensure_aware, utc_now
from unidrive.utils.ids import generate_share_token

logger = setup_logging()

EXPIRY_PRESETS: dict[str, timedelta | None] = {
    "1h": timedelta(hours=1),
    "3h": timedelta(hours=3),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "0": None,
}
DEFAULT_EXPIRY = "24h"


@dataclass
class ShareInfo:
    item_type: ItemType
    id: int
    name: str
    token: str
    expires_at: datetime | None


def share_expiry(expires_in: str | None = None, expires_at: datetime | None = None) -> datetime | None:
    """
    Work out when a new share link expires.

    An explicit ``expires_at`` wins; otherwise ``expires_in`` is one of
    1h, 3h, 24h, 7d or 0 (never). Unknown presets fall back to 24h.

    Raises:
        ValidationError: If expires_at is in the past
    """
    if expires_at is not None:
        expires_at = ensure_aware(expires_at)
        if expires_at <= utc_now():
            raise ValidationError("Expiry time must be in the future")
        return expires_at

    delta = EXPIRY_PRESETS.get(expires_in or DEFAULT_EXPIRY, EXPIRY_PRESETS[DEFAULT_EXPIRY])
    return None if delta is None else utc_now() + delta


def _is_active(item: File | Folder) -> bool:
    if item.share_token is None:
        return False
    expires_at = ensure_aware(item.share_expires_at)
    return expires_at is None or expires_at > utc_now()


def _owned_item(db: Session, owner_id: int, item_type: ItemType, item_id: int) -> File | Folder:
    if item_type == ItemType.FOLDER:
        return get_folder(db, owner_id, item_id)
    return get_file(db, owner_id, item_id)


def create_share_link(
    db: Session,
    owner_id: int,
    item_type: ItemType,
    item_id: int,
    expires_in: str | None = None,
    password: str | None = None,
    expires_at: datetime | None = None,
) -> ShareInfo:
    """
    Issue a new share token for a live item, replacing any previous one.

    Raises:
        NotFoundError: If the item does not exist or is trashed
        ValidationError: If the item is the root folder or expires_at is past
    """
    item = _owned_item(db, owner_id, item_type, item_id)
    if isinstance(item, Folder) and item.parent_id is None:
        raise ValidationError("The root folder cannot be shared")

    item.share_token = generate_share_token()
    item.share_expires_at = share_expiry(expires_in, expires_at)
    item.share_password = hash_password(password) if password else None
    db.commit()
    logger.info(f"Shared {item_type.value} {item.id} for user {owner_id} until {item.share_expires_at}")
    return ShareInfo(item_type, item.id, item.name, item.share_token, item.share_expires_at)


def cancel_share(db: Session, owner_id: int, item_type: ItemType, item_id: int) -> None:
    item = _owned_item(db, owner_id, item_type, item_id)
    item.share_token = None
    item.share_expires_at = None
    item.share_password = None
    db.commit()
    logger.info(f"Cancelled share of {item_type.value} {item.id} for user {owner_id}")


def list_active_shares(db: Session, owner_id: int) -> list[ShareInfo]:
    now = utc_now()
    shares: list[ShareInfo] = []
    for model, item_type in ((File, ItemType.FILE), (Folder, ItemType.FOLDER)):
        rows = db.scalars(
            select(model).where(
                model.user_id == owner_id,
                model.share_token.is_not(None),
                model.is_deleted.is_(False),
                or_(model.share_expires_at.is_(None), model.share_expires_at > now),
            )
        ).all()
        shares.extend(
            ShareInfo(item_type, row.id, row.name, row.share_token, row.share_expires_at)
            for row in rows
        )
    return shares


def get_file_by_share_token(db: Session, token: str) -> File | None:
    """Live, unexpired shared file, or None."""
    file = db.scalar(select(File).where(File.share_token == token))
    if file is None or file.is_deleted or not _is_active(file):
        return None
    folder = db.get(Folder, file.folder_id)
    if folder is None or has_trashed_ancestor(db, folder):
        return None
    return file


def get_folder_by_share_token(db: Session, token: str) -> Folder | None:
    """Live, unexpired shared folder, or None."""
    folder = db.scalar(select(Folder).where(Folder.share_token == token))
    if folder is None or not _is_active(folder) or has_trashed_ancestor(db, folder):
        return None
    return folder


def check_share_password(item: File | Folder, password: str | None) -> bool:
    """True when the share has no password or ``password`` matches it."""
    if item.share_password is None:
        return True
    return verify_password(password, item.share_password)

"""
Folder locks.

A locked folder carries a bcrypt password hash. Listing a folder or
downloading a file requires the password of every locked folder on the
path from the root.
"""
from sqlalchemy.orm import Session

from unidrive.config import settings
from unidrive.exceptions import LockError, NotFoundError, ValidationError
from unidrive.logging_config import setup_logging
from unidrive.models import File, Folder
from unidrive.services.folders import get_folder, get_folder_path
from unidrive.services.passwords import hash_password, verify_password

logger = setup_logging()


def set_folder_password(
    db: Session,
    owner_id: int,
    folder_id: int,
    password: str,
    old_password: str | None = None,
) -> Folder:
    """
    Lock a folder, or change the password of a locked one.

    Raises:
        ValidationError: If the password is too short or the folder is the root
        LockError: If the folder is locked and old_password is wrong
        NotFoundError: If the folder does not exist
    """
    folder = get_folder(db, owner_id, folder_id)
    if folder.parent_id is None:
        raise ValidationError("The root folder cannot be locked")
    if not password or len(password) < settings.FOLDER_PASSWORD_MIN_LENGTH:
        raise ValidationError(
            f"Password must be at least {settings.FOLDER_PASSWORD_MIN_LENGTH} characters"
        )
    if folder.is_locked and not verify_password(old_password, folder.password):
        raise LockError("Current folder password is incorrect")

    folder.password = hash_password(password)
    db.commit()
    logger.info(f"Folder {folder.id} locked by user {owner_id}")
    return folder


def remove_folder_password(db: Session, owner_id: int, folder_id: int, password: str) -> Folder:
    """
    Unlock a folder permanently.

    Raises:
        LockError: If the folder is not locked or the password is wrong
    """
    folder = get_folder(db, owner_id, folder_id)
    if not folder.is_locked:
        raise LockError("Folder is not locked")
    if not verify_password(password, folder.password):
        raise LockError("Folder password is incorrect")

    folder.password = None
    db.commit()
    logger.info(f"Folder {folder.id} unlocked by user {owner_id}")
    return folder


def verify_folder_password(db: Session, owner_id: int, folder_id: int, password: str) -> bool:
    folder = get_folder(db, owner_id, folder_id)
    if not folder.is_locked:
        raise LockError("Folder is not locked")
    return verify_password(password, folder.password)


def check_folder_access(db: Session, folder: Folder, password: str | None = None) -> list[Folder]:
    """
    Make sure ``folder`` may be opened with ``password``.

    Returns:
        The path from root to ``folder``

    Raises:
        NotFoundError: If the folder or one of its ancestors is trashed
        LockError: If a locked folder on the path does not accept the password
    """
    path = get_folder_path(db, folder)
    for ancestor in path:
        if ancestor.is_deleted:
            raise NotFoundError("Folder")
        if ancestor.is_locked and not verify_password(password, ancestor.password):
            raise LockError(f"Folder '{ancestor.name}' is locked")
    return path


def check_file_access(db: Session, file: File, password: str | None = None) -> None:
    """Same rule as check_folder_access, applied to the file's folder."""
    folder = db.get(Folder, file.folder_id)
    if folder is None:
        raise NotFoundError("File")
    check_folder_access(db, folder, password)

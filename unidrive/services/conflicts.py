"""
Conflict resolution engine.

Decides what happens when an incoming name collides with a live item in a
destination folder, and keeps trashed items from holding on to names that
live items need.
"""
import posixpath
from dataclasses import dataclass, field
from enum import Enum

from sqlalchemy import select
from sqlalchemy.orm import Session

from unidrive.logging_config import setup_logging
from unidrive.models import File, Folder
from unidrive.services.folders import find_item_in_folder
from unidrive.utils.datetime import deletion_stamp

logger = setup_logging()


class ItemType(str, Enum):
    FILE = "file"
    FOLDER = "folder"


class Resolution(str, Enum):
    """Per-path decision supplied by the caller."""

    RENAME = "rename"
    OVERWRITE = "overwrite"
    SKIP = "skip"
    MERGE = "merge"


@dataclass
class ConflictReport:
    file_conflicts: list[str] = field(default_factory=list)
    folder_conflicts: list[str] = field(default_factory=list)


def item_type_of(item: File | Folder) -> ItemType:
    return ItemType.FOLDER if isinstance(item, Folder) else ItemType.FILE


def numbered_name(name: str, n: int, is_folder: bool) -> str:
    """'report.txt' -> 'report (n).txt'; folders keep dots in the base name."""
    if is_folder:
        return f"{name} ({n})"
    base, ext = posixpath.splitext(name)
    return f"{base} ({n}){ext}"


def find_available_name(
    db: Session, owner_id: int, folder_id: int, name: str, is_folder: bool = False
) -> str:
    """
    Return ``name`` if it is free among live siblings, else the first free
    ``base (n).ext`` counting n up from 1.
    """
    candidate = name
    n = 1
    while find_item_in_folder(db, owner_id, folder_id, candidate) is not None:
        candidate = numbered_name(name, n, is_folder)
        n += 1
    return candidate


def deleted_name(item: File | Folder) -> str:
    """``<name>_deleted_<YYYYMMDDHHMMSS>`` using the item's deletion time."""
    return f"{item.name}_deleted_{deletion_stamp(item.deleted_at)}"


def free_trashed_name(db: Session, owner_id: int, folder_id: int, name: str) -> list[File | Folder]:
    """
    Rename trashed items called ``name`` in a folder out of the way.

    Metadata only: objects keep their locators until a write needs them.
    Returns the renamed items.
    """
    trashed: list[File | Folder] = list(
        db.scalars(
            select(Folder).where(
                Folder.user_id == owner_id,
                Folder.parent_id == folder_id,
                Folder.name == name,
                Folder.is_deleted.is_(True),
            )
        )
    )
    trashed.extend(
        db.scalars(
            select(File).where(
                File.user_id == owner_id,
                File.folder_id == folder_id,
                File.name == name,
                File.is_deleted.is_(True),
            )
        )
    )

    for item in trashed:
        new_name = find_available_name(
            db, owner_id, folder_id, deleted_name(item), isinstance(item, Folder)
        )
        logger.info(f"Renaming trashed {item_type_of(item).value} {item.id} '{item.name}' to '{new_name}'")
        item.name = new_name
    if trashed:
        db.flush()
    return trashed


def check_conflicts(
    db: Session,
    owner_id: int,
    items: list[File | Folder],
    destination_id: int,
) -> ConflictReport:
    """
    Report which items would collide in the destination.

    A folder landing on a live folder of the same name is a merge candidate
    and goes to folder_conflicts; every other collision goes to
    file_conflicts.
    """
    report = ConflictReport()
    for item in items:
        existing = find_item_in_folder(db, owner_id, destination_id, item.name)
        if existing is None or existing is item:
            continue
        if isinstance(item, Folder) and isinstance(existing, Folder):
            if item.name not in report.folder_conflicts:
                report.folder_conflicts.append(item.name)
        elif item.name not in report.file_conflicts:
            report.file_conflicts.append(item.name)
    return report

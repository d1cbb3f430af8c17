"""
Folder tree queries.

Owned lookups, breadcrumbs, listings and subtree collection. Every lookup
is scoped to an owner: another owner's id behaves exactly like an unknown
one.
"""
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from unidrive.exceptions import NotFoundError
from unidrive.logging_config import setup_logging
from unidrive.models import File, Folder, User
from unidrive.storage.base import OwnerContext

logger = setup_logging()

ROOT_FOLDER_NAME = "/"


@dataclass
class FolderListing:
    folder: Folder
    breadcrumb: list[Folder]
    folders: list[Folder] = field(default_factory=list)
    files: list[File] = field(default_factory=list)


@dataclass
class Subtree:
    """A folder plus every descendant row, live or trashed, parents before children."""

    folders: list[Folder] = field(default_factory=list)
    files: list[File] = field(default_factory=list)


def get_root_folder(db: Session, owner_id: int) -> Folder | None:
    return db.scalar(
        select(Folder).where(Folder.user_id == owner_id, Folder.parent_id.is_(None))
    )


def ensure_root_folder(db: Session, user: User) -> Folder:
    """Return the owner's root folder, creating it on first use."""
    root = get_root_folder(db, user.id)
    if root is None:
        root = Folder(name=ROOT_FOLDER_NAME, parent_id=None, user_id=user.id)
        db.add(root)
        db.commit()
        db.refresh(root)
        logger.info(f"Created root folder for user {user.id}")
    return root


def get_folder(
    db: Session, owner_id: int, folder_id: int | None, include_deleted: bool = False
) -> Folder:
    """
    Load one of the owner's folders.

    Raises:
        NotFoundError: If the folder does not exist, belongs to someone else,
            or is trashed and include_deleted is False
    """
    folder = db.get(Folder, folder_id) if folder_id is not None else None
    if folder is None or folder.user_id != owner_id:
        raise NotFoundError("Folder")
    if folder.is_deleted and not include_deleted:
        raise NotFoundError("Folder")
    return folder


def get_file(
    db: Session, owner_id: int, file_id: int | None, include_deleted: bool = False
) -> File:
    """
    Load one of the owner's files.

    Raises:
        NotFoundError: Under the same rules as get_folder
    """
    file = db.get(File, file_id) if file_id is not None else None
    if file is None or file.user_id != owner_id:
        raise NotFoundError("File")
    if file.is_deleted and not include_deleted:
        raise NotFoundError("File")
    return file


def get_folder_path(db: Session, folder: Folder) -> list[Folder]:
    """Return the breadcrumb from the owner's root down to ``folder``."""
    path = [folder]
    seen = {folder.id}
    current = folder
    while current.parent_id is not None:
        parent = db.get(Folder, current.parent_id)
        if parent is None or parent.id in seen:
            break
        path.append(parent)
        seen.add(parent.id)
        current = parent
    path.reverse()
    return path


def owner_context(db: Session, folder: Folder) -> OwnerContext:
    """Owner id plus folder names below the root, as backends address them."""
    names = tuple(f.name for f in get_folder_path(db, folder) if f.parent_id is not None)
    return OwnerContext(owner_id=folder.user_id, folder_path=names)


def has_trashed_ancestor(db: Session, folder: Folder) -> bool:
    """True if the folder or any ancestor is in the trash."""
    return any(f.is_deleted for f in get_folder_path(db, folder))


def is_descendant(db: Session, folder: Folder, ancestor_id: int) -> bool:
    """True if ``ancestor_id`` is ``folder`` itself or one of its ancestors."""
    return any(f.id == ancestor_id for f in get_folder_path(db, folder))


def collect_subtree(db: Session, owner_id: int, folder_ids: list[int]) -> Subtree:
    """
    Collect folders and every descendant, level by level.

    The start folders are included. Rows are returned whatever their trash
    state: a permanent delete has to reach trashed children too.
    """
    subtree = Subtree()
    seen: set[int] = set()
    frontier = list(dict.fromkeys(folder_ids))
    level = list(
        db.scalars(select(Folder).where(Folder.id.in_(frontier), Folder.user_id == owner_id))
    )

    while level:
        level = [f for f in level if f.id not in seen]
        if not level:
            break
        subtree.folders.extend(level)
        ids = [f.id for f in level]
        seen.update(ids)
        subtree.files.extend(
            db.scalars(select(File).where(File.folder_id.in_(ids), File.user_id == owner_id))
        )
        level = list(
            db.scalars(
                select(Folder)
                .where(Folder.parent_id.in_(ids), Folder.user_id == owner_id)
                .order_by(Folder.id)
            )
        )
    return subtree


def list_folder(db: Session, folder: Folder) -> FolderListing:
    """Live children of a folder, folders and files each sorted by name."""
    folders = db.scalars(
        select(Folder)
        .where(Folder.parent_id == folder.id, Folder.user_id == folder.user_id, Folder.is_deleted.is_(False))
        .order_by(Folder.name)
    ).all()
    files = db.scalars(
        select(File)
        .where(File.folder_id == folder.id, File.user_id == folder.user_id, File.is_deleted.is_(False))
        .order_by(File.name)
    ).all()
    return FolderListing(
        folder=folder,
        breadcrumb=get_folder_path(db, folder),
        folders=list(folders),
        files=list(files),
    )


def list_all_folders(db: Session, owner_id: int) -> list[Folder]:
    """Every folder reachable without passing through the trash."""
    folders = db.scalars(
        select(Folder).where(Folder.user_id == owner_id).order_by(Folder.name)
    ).all()
    by_id = {f.id: f for f in folders}

    visible: dict[int, bool] = {}

    def _visible(folder: Folder) -> bool:
        if folder.id not in visible:
            if folder.is_deleted:
                visible[folder.id] = False
            elif folder.parent_id is None:
                visible[folder.id] = True
            else:
                parent = by_id.get(folder.parent_id)
                visible[folder.id] = parent is not None and _visible(parent)
        return visible[folder.id]

    return [f for f in folders if _visible(f)]


def find_item_in_folder(db: Session, owner_id: int, folder_id: int, name: str) -> Folder | File | None:
    """Return the live folder or file called ``name`` directly inside a folder."""
    folder = db.scalar(
        select(Folder).where(
            Folder.user_id == owner_id,
            Folder.parent_id == folder_id,
            Folder.name == name,
            Folder.is_deleted.is_(False),
        )
    )
    if folder is not None:
        return folder
    return db.scalar(
        select(File).where(
            File.user_id == owner_id,
            File.folder_id == folder_id,
            File.name == name,
            File.is_deleted.is_(False),
        )
    )


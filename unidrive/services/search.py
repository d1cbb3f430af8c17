"""Name search over an owner's live tree."""
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from unidrive.models import File, Folder

SEARCH_LIMIT = 200


@dataclass
class SearchResult:
    folders: list[Folder] = field(default_factory=list)
    files: list[File] = field(default_factory=list)


def _escape_like(query: str) -> str:
    return query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _open_folder_ids(db: Session, owner_id: int) -> set[int]:
    """Ids of folders reachable from the root without passing a trashed or locked folder."""
    rows = db.execute(
        select(Folder.id, Folder.parent_id, Folder.is_deleted, Folder.password).where(
            Folder.user_id == owner_id
        )
    ).all()
    children: dict[int | None, list] = {}
    for row in rows:
        children.setdefault(row.parent_id, []).append(row)

    open_ids: set[int] = set()
    frontier = [row for row in children.get(None, []) if not row.is_deleted]
    while frontier:
        next_level = []
        for row in frontier:
            if row.is_deleted or row.password is not None or row.id in open_ids:
                continue
            open_ids.add(row.id)
            next_level.extend(children.get(row.id, []))
        frontier = next_level
    return open_ids


def search_items(db: Session, owner_id: int, query: str) -> SearchResult:
    """
    Case-insensitive substring match over live names.

    Items inside a trashed or locked folder are hidden, and so are locked
    folders themselves. The root folder never matches.
    """
    query = (query or "").strip()
    if not query:
        return SearchResult()

    pattern = f"%{_escape_like(query.lower())}%"
    open_ids = _open_folder_ids(db, owner_id)
    if not open_ids:
        return SearchResult()

    folders = db.scalars(
        select(Folder)
        .where(
            Folder.user_id == owner_id,
            Folder.parent_id.is_not(None),
            Folder.id.in_(open_ids),
            func.lower(Folder.name).like(pattern, escape="\\"),
        )
        .order_by(Folder.name)
        .limit(SEARCH_LIMIT)
    ).all()
    files = db.scalars(
        select(File)
        .where(
            File.user_id == owner_id,
            File.is_deleted.is_(False),
            File.folder_id.in_(open_ids),
            func.lower(File.name).like(pattern, escape="\\"),
        )
        .order_by(File.created_at.desc())
        .limit(SEARCH_LIMIT)
    ).all()
    return SearchResult(folders=list(folders), files=list(files))

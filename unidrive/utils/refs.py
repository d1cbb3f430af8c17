"""Turn outward item references (file id strings, folder handles) into ids."""
from unidrive.exceptions import NotFoundError
from unidrive.services.conflicts import ItemType
from unidrive.utils.handles import decrypt_id
from unidrive.utils.ids import MAX_FILE_ID


def folder_id_from_handle(handle: str | None) -> int:
    """
    Raises:
        NotFoundError: If the handle is malformed or tampered with
    """
    folder_id = decrypt_id(handle)
    if folder_id is None:
        raise NotFoundError("Folder")
    return folder_id


def file_id_from_str(value: str | int | None) -> int:
    """
    Raises:
        NotFoundError: If the value is not an integer in [1, MAX_FILE_ID]
    """
    try:
        file_id = int(value)
    except (TypeError, ValueError):
        raise NotFoundError("File")
    if not 0 < file_id <= MAX_FILE_ID:
        raise NotFoundError("File")
    return file_id


def item_id(item_type: ItemType, value: str) -> int:
    if item_type == ItemType.FOLDER:
        return folder_id_from_handle(value)
    return file_id_from_str(value)


def split_refs(refs) -> tuple[list[int], list[int]]:
    """
    Split ItemRefs into (file_ids, folder_ids), dropping unreadable ones.

    An unreadable reference names nothing the caller owns, so it is
    treated like any other unknown id and simply ignored.
    """
    file_ids: list[int] = []
    folder_ids: list[int] = []
    for ref in refs:
        try:
            value = item_id(ref.type, ref.id)
        except NotFoundError:
            continue
        if ref.type == ItemType.FOLDER:
            folder_ids.append(value)
        else:
            file_ids.append(value)
    return file_ids, folder_ids

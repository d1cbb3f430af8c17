"""
Tests for share links.
"""
from datetime import timedelta

import pytest

from unidrive.exceptions import NotFoundError, ValidationError
from unidrive.services.conflicts import ItemType
from unidrive.services.sharing import (
    cancel_share,
    check_share_password,
    create_share_link,
    get_file_by_share_token,
    get_folder_by_share_token,
    list_active_shares,
    share_expiry,
)
from unidrive.utils.datetime import ensure_aware, utc_now


def test_share_expiry_presets():
    before = utc_now()

    assert share_expiry("0") is None
    assert share_expiry("1h") - before >= timedelta(hours=1)
    assert share_expiry("7d") - before < timedelta(days=7, minutes=1)
    # Unknown presets fall back to a day
    assert timedelta(hours=23) < share_expiry("fortnight") - before <= timedelta(hours=24, minutes=1)


def test_share_expiry_explicit_time():
    later = utc_now() + timedelta(days=3)

    assert share_expiry("1h", later) == later
    with pytest.raises(ValidationError):
        share_expiry(expires_at=utc_now() - timedelta(minutes=1))


def test_share_and_resolve_file(db, owner, root, make_file):
    file = make_file(root, "a.txt")

    info = create_share_link(db, owner.id, ItemType.FILE, file.id, "24h")

    assert len(info.token) == 12
    assert info.name == "a.txt"
    assert get_file_by_share_token(db, info.token).id == file.id
    assert get_folder_by_share_token(db, info.token) is None
    assert [s.id for s in list_active_shares(db, owner.id)] == [file.id]


def test_new_share_replaces_old_token(db, owner, root, make_file):
    file = make_file(root, "a.txt")
    first = create_share_link(db, owner.id, ItemType.FILE, file.id)
    second = create_share_link(db, owner.id, ItemType.FILE, file.id)

    assert first.token != second.token
    assert get_file_by_share_token(db, first.token) is None


def test_expired_share_resolves_to_nothing(db, owner, root, make_file):
    file = make_file(root, "a.txt")
    info = create_share_link(db, owner.id, ItemType.FILE, file.id)
    file.share_expires_at = utc_now() - timedelta(seconds=1)
    db.commit()

    assert get_file_by_share_token(db, info.token) is None
    assert list_active_shares(db, owner.id) == []


def test_trashed_ancestor_hides_share(db, owner, root, make_folder, make_file):
    docs = make_folder(root, "Docs")
    file = make_file(docs, "a.txt")
    file_share = create_share_link(db, owner.id, ItemType.FILE, file.id, "0")
    folder_share = create_share_link(db, owner.id, ItemType.FOLDER, docs.id, "0")
    docs.is_deleted = True
    docs.deleted_at = utc_now()
    db.commit()

    assert get_file_by_share_token(db, file_share.token) is None
    assert get_folder_by_share_token(db, folder_share.token) is None


def test_share_password(db, owner, root, make_folder):
    docs = make_folder(root, "Docs")
    info = create_share_link(db, owner.id, ItemType.FOLDER, docs.id, password="letmein")

    folder = get_folder_by_share_token(db, info.token)
    assert ensure_aware(info.expires_at) > utc_now()
    assert check_share_password(folder, "letmein")
    assert not check_share_password(folder, "nope")
    assert not check_share_password(folder, None)


def test_cancel_share(db, owner, root, make_file):
    file = make_file(root, "a.txt")
    info = create_share_link(db, owner.id, ItemType.FILE, file.id)

    cancel_share(db, owner.id, ItemType.FILE, file.id)

    assert get_file_by_share_token(db, info.token) is None
    assert check_share_password(file, None)


def test_root_and_trashed_items_cannot_be_shared(db, owner, root, make_file):
    gone = make_file(root, "gone.txt", deleted_at=utc_now())

    with pytest.raises(ValidationError):
        create_share_link(db, owner.id, ItemType.FOLDER, root.id)
    with pytest.raises(NotFoundError):
        create_share_link(db, owner.id, ItemType.FILE, gone.id)

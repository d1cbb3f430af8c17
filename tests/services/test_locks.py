"""
Tests for folder locks.
"""
import pytest

from unidrive.exceptions import LockError, NotFoundError, ValidationError
from unidrive.services.locks import (
    check_file_access,
    check_folder_access,
    remove_folder_password,
    set_folder_password,
    verify_folder_password,
)
from unidrive.services.passwords import hash_password, verify_password
from unidrive.utils.datetime import utc_now


def test_password_hashing():
    hashed = hash_password("secret123")

    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password(None, hashed)
    assert not verify_password("secret123", None)


def test_lock_and_unlock(db, owner, root, make_folder):
    vault = make_folder(root, "Vault")

    set_folder_password(db, owner.id, vault.id, "secret123")
    assert vault.is_locked
    assert verify_folder_password(db, owner.id, vault.id, "secret123")
    assert not verify_folder_password(db, owner.id, vault.id, "nope")

    with pytest.raises(LockError):
        remove_folder_password(db, owner.id, vault.id, "nope")
    remove_folder_password(db, owner.id, vault.id, "secret123")
    assert not vault.is_locked


def test_change_password_needs_old_one(db, owner, root, make_folder):
    vault = make_folder(root, "Vault")
    set_folder_password(db, owner.id, vault.id, "secret123")

    with pytest.raises(LockError):
        set_folder_password(db, owner.id, vault.id, "newsecret", old_password="wrong")

    set_folder_password(db, owner.id, vault.id, "newsecret", old_password="secret123")
    assert verify_folder_password(db, owner.id, vault.id, "newsecret")


def test_lock_rules(db, owner, root, make_folder):
    vault = make_folder(root, "Vault")

    with pytest.raises(ValidationError):
        set_folder_password(db, owner.id, root.id, "secret123")
    with pytest.raises(ValidationError):
        set_folder_password(db, owner.id, vault.id, "abc")
    with pytest.raises(LockError):
        verify_folder_password(db, owner.id, vault.id, "secret123")
    with pytest.raises(LockError):
        remove_folder_password(db, owner.id, vault.id, "secret123")


def test_access_requires_password_of_locked_ancestor(db, owner, root, make_folder, make_file):
    vault = make_folder(root, "Vault")
    inner = make_folder(vault, "Inner")
    file = make_file(inner, "a.txt")
    set_folder_password(db, owner.id, vault.id, "secret123")

    with pytest.raises(LockError):
        check_folder_access(db, inner)
    with pytest.raises(LockError):
        check_file_access(db, file, "wrong")

    path = check_folder_access(db, inner, "secret123")
    assert [f.name for f in path] == ["/", "Vault", "Inner"]
    check_file_access(db, file, "secret123")


def test_trashed_ancestor_hides_folder(db, owner, root, make_folder):
    gone = make_folder(root, "Gone", deleted_at=utc_now())
    inner = make_folder(gone, "Inner")

    with pytest.raises(NotFoundError):
        check_folder_access(db, inner)

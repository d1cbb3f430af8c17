"""
Tests for name search.
"""
from unidrive.services.locks import set_folder_password
from unidrive.services.search import search_items
from unidrive.utils.datetime import utc_now


def test_case_insensitive_substring(db, owner, root, make_folder, make_file):
    reports = make_folder(root, "Reports")
    make_file(reports, "Q1 Report.pdf")
    make_file(root, "notes.txt")

    result = search_items(db, owner.id, "report")

    assert [f.name for f in result.folders] == ["Reports"]
    assert [f.name for f in result.files] == ["Q1 Report.pdf"]


def test_trashed_and_locked_trees_are_hidden(db, owner, root, make_folder, make_file):
    gone = make_folder(root, "Gone", deleted_at=utc_now())
    make_file(gone, "plan-a.txt")
    vault = make_folder(root, "Vault plans")
    make_file(vault, "plan-b.txt")
    set_folder_password(db, owner.id, vault.id, "secret123")
    make_file(root, "plan-c.txt")
    make_file(root, "plan-d.txt", deleted_at=utc_now())

    result = search_items(db, owner.id, "plan")

    assert result.folders == []
    assert [f.name for f in result.files] == ["plan-c.txt"]


def test_wildcards_are_literal(db, owner, root, make_file):
    make_file(root, "100%.txt")
    make_file(root, "1000.txt")
    make_file(root, "a_b.txt")
    make_file(root, "axb.txt")

    assert [f.name for f in search_items(db, owner.id, "0%").files] == ["100%.txt"]
    assert [f.name for f in search_items(db, owner.id, "a_b").files] == ["a_b.txt"]


def test_empty_query_and_root(db, owner, root):
    assert search_items(db, owner.id, "   ").files == []
    assert search_items(db, owner.id, "/").folders == []


def test_other_owners_are_invisible(db, owner, root, make_file):
    from unidrive.models import User
    from unidrive.services.folders import ensure_root_folder

    bob = User(username="bob", max_storage_bytes=0)
    db.add(bob)
    db.commit()
    bob_root = ensure_root_folder(db, bob)
    make_file(bob_root, "secret.txt", user=bob)

    assert search_items(db, owner.id, "secret").files == []
    assert [f.name for f in search_items(db, bob.id, "secret").files] == ["secret.txt"]

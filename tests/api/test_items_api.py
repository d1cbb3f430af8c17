"""
Tests for rename, move, conflict pre-check and delete endpoints.
"""
from unidrive.models import File, Folder
from unidrive.utils.handles import encrypt_id
from tests.constants import URLs


def file_ref(file: File) -> dict:
    return {"type": "file", "id": str(file.id)}


def folder_ref(folder: Folder) -> dict:
    return {"type": "folder", "id": encrypt_id(folder.id)}


def test_rename_file(client, db, owner, root, backend, make_file):
    file = make_file(root, "a.txt")

    response = client.post(URLs.RENAME, json={"item": file_ref(file), "name": "b.txt"})

    assert response.status_code == 200
    assert response.json()["data"]["name"] == "b.txt"
    db.refresh(file)
    assert file.locator == f"/{owner.id}/b.txt"


def test_rename_folder_conflict(client, root, make_folder):
    make_folder(root, "Taken")
    docs = make_folder(root, "Docs")

    response = client.post(URLs.RENAME, json={"item": folder_ref(docs), "name": "Taken"})

    assert response.status_code == 409


def test_rename_unknown_file(client):
    response = client.post(URLs.RENAME, json={"item": {"type": "file", "id": "42"}, "name": "x"})

    assert response.status_code == 404


def test_move_with_resolutions(client, db, root, make_folder, make_file):
    a = make_folder(root, "A")
    b = make_folder(root, "B")
    make_file(b, "report.txt", b"old")
    incoming = make_file(a, "report.txt", b"new")
    other = make_file(a, "other.txt")

    response = client.post(
        URLs.MOVE,
        json={
            "items": [file_ref(incoming), file_ref(other), {"type": "file", "id": "nope"}],
            "destination": encrypt_id(b.id),
            "resolutions": {"report.txt": "rename"},
        },
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert (data["moved"], data["skipped"], data["errors"]) == (2, 0, 1)
    db.refresh(incoming)
    assert incoming.name == "report (1).txt"
    assert incoming.folder_id == b.id


def test_move_into_own_subfolder(client, db, root, make_folder):
    a = make_folder(root, "A")
    inner = make_folder(a, "Inner")

    response = client.post(
        URLs.MOVE, json={"items": [folder_ref(a)], "destination": encrypt_id(inner.id)}
    )

    assert response.status_code == 400
    assert "subfolders" in response.json()["message"]
    db.refresh(a)
    assert a.parent_id == root.id


def test_move_to_unknown_destination(client, root, make_file):
    file = make_file(root, "a.txt")

    response = client.post(URLs.MOVE, json={"items": [file_ref(file)], "destination": "bogus"})

    assert response.status_code == 404


def test_move_requires_items(client, root):
    response = client.post(URLs.MOVE, json={"items": [], "destination": encrypt_id(root.id)})

    assert response.status_code == 422


def test_conflict_check(client, root, make_folder, make_file):
    a = make_folder(root, "A")
    b = make_folder(root, "B")
    make_file(b, "x.txt")
    make_folder(b, "Photos")
    moving_file = make_file(a, "x.txt")
    moving_folder = make_folder(a, "Photos")
    free = make_file(a, "free.txt")

    response = client.post(
        URLs.CONFLICTS,
        json={
            "items": [file_ref(moving_file), folder_ref(moving_folder), file_ref(free)],
            "destination": encrypt_id(b.id),
        },
    )

    assert response.json()["data"] == {"file_conflicts": ["x.txt"], "folder_conflicts": ["Photos"]}


def test_soft_delete(client, db, root, make_folder, make_file):
    docs = make_folder(root, "Docs")
    file = make_file(root, "a.txt")

    response = client.post(
        URLs.DELETE, json={"items": [folder_ref(docs), file_ref(file)]}
    )

    assert response.json()["data"] == {"files": 1, "folders": 1}
    db.refresh(docs)
    db.refresh(file)
    assert docs.is_deleted and file.is_deleted
    trash = client.get(URLs.TRASH).json()["data"]
    assert [f["name"] for f in trash["files"]] == ["a.txt"]


def test_permanent_delete(client, db, root, backend, make_file):
    file = make_file(root, "a.txt")
    file_id, locator = file.id, file.locator

    response = client.post(URLs.DELETE, json={"items": [file_ref(file)], "permanent": True})

    assert response.json()["data"] == {"files": 1, "folders": 0}
    assert db.get(File, file_id) is None
    assert locator not in backend.objects

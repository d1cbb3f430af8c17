"""
Tests for the multi-file upload pipeline.
"""
import pytest
from sqlalchemy import select

from unidrive.exceptions import NotFoundError
from unidrive.models import File, Folder
from unidrive.services.conflicts import Resolution
from unidrive.services.upload import IncomingFile, check_existence, upload_files


async def body(data: bytes):
    yield data


def incoming(path: str, data: bytes = b"data") -> IncomingFile:
    return IncomingFile(path, "text/plain", body(data))


@pytest.mark.asyncio
async def test_upload_with_rename_resolution(db, owner, root, registry, resolver, limiter, backend, make_folder, make_file):
    """Uploading report.txt into a folder that already has one, with rename."""
    a = make_folder(root, "A")
    original = make_file(a, "report.txt", b"original")

    report = await upload_files(
        db, registry, resolver, limiter, owner, a.id,
        [incoming("report.txt", b"second")],
        {"report.txt": Resolution.RENAME},
    )

    db.refresh(original)
    assert (report.moved, report.skipped) == (1, 0)
    assert original.name == "report.txt"
    names = sorted(db.scalars(select(File.name).where(File.folder_id == a.id)).all())
    assert names == ["report (1).txt", "report.txt"]
    assert backend.objects[f"/{owner.id}/A/report (1).txt"] == b"second"
    assert backend.objects[f"/{owner.id}/A/report.txt"] == b"original"


@pytest.mark.asyncio
async def test_conflict_without_resolution_is_skipped(db, owner, root, registry, resolver, limiter, backend, make_file):
    make_file(root, "a.txt", b"original")

    report = await upload_files(db, registry, resolver, limiter, owner, root.id, [incoming("a.txt")])

    assert (report.moved, report.skipped) == (0, 1)
    assert backend.uploads == 0


@pytest.mark.asyncio
async def test_overwrite_replaces_file(db, owner, root, registry, resolver, limiter, backend, make_file):
    old = make_file(root, "a.txt", b"original")
    old_id = old.id

    report = await upload_files(
        db, registry, resolver, limiter, owner, root.id,
        [incoming("a.txt", b"replacement")],
        {"a.txt": Resolution.OVERWRITE},
    )

    assert report.moved == 1
    assert db.get(File, old_id) is None
    assert backend.objects[f"/{owner.id}/a.txt"] == b"replacement"


@pytest.mark.asyncio
async def test_overwrite_never_replaces_folder(db, owner, root, registry, resolver, limiter, make_folder):
    make_folder(root, "a.txt")

    report = await upload_files(
        db, registry, resolver, limiter, owner, root.id,
        [incoming("a.txt")],
        {"a.txt": Resolution.OVERWRITE},
    )

    assert (report.moved, report.skipped) == (0, 1)


@pytest.mark.asyncio
async def test_folder_upload_creates_tree(db, owner, root, registry, resolver, limiter, backend):
    report = await upload_files(
        db, registry, resolver, limiter, owner, root.id,
        [incoming("Trip/day1/a.jpg"), incoming("Trip/day1/b.jpg"), incoming("Trip/c.jpg")],
    )

    assert report.moved == 3
    assert sorted(db.scalars(select(Folder.name).where(Folder.parent_id.is_not(None))).all()) == ["Trip", "day1"]
    assert f"/{owner.id}/Trip/day1/a.jpg" in backend.objects
    assert f"/{owner.id}/Trip/c.jpg" in backend.objects


@pytest.mark.asyncio
async def test_one_failure_does_not_stop_siblings(db, owner, root, registry, resolver, limiter):
    async def broken():
        yield b"partial"
        raise ConnectionResetError("client went away")

    report = await upload_files(
        db, registry, resolver, limiter, owner, root.id,
        [incoming("ok.txt"), IncomingFile("bad.txt", "text/plain", broken()), incoming("../x")],
    )

    assert (report.moved, report.errors) == (1, 2)
    assert db.scalars(select(File.name)).all() == ["ok.txt"]
    assert len(report.messages) == 2


@pytest.mark.asyncio
async def test_upload_into_missing_folder(db, owner, registry, resolver, limiter):
    with pytest.raises(NotFoundError):
        await upload_files(db, registry, resolver, limiter, owner, 9999, [incoming("a.txt")])


@pytest.mark.asyncio
async def test_upload_to_owner_backend(db, owner, root, backend, message_backend, resolver, limiter):
    from unidrive.storage.registry import StorageRegistry

    registry = StorageRegistry(
        default=backend.backend_type,
        backends={backend.backend_type: backend, message_backend.backend_type: message_backend},
    )
    owner.storage_type = "telegram"
    db.commit()

    await upload_files(db, registry, resolver, limiter, owner, root.id, [incoming("a.txt")])

    file = db.scalar(select(File))
    assert file.storage_type == "telegram"
    assert file.locator == "1:doc1"
    assert backend.uploads == 0


def test_check_existence(db, owner, root, resolver, make_folder, make_file):
    docs = make_folder(root, "Docs")
    present = make_file(docs, "a.txt")
    make_folder(docs, "sub")

    checks = check_existence(db, resolver, owner.id, root.id, ["Docs/a.txt", "Docs/b.txt", "Nope/a.txt", "Docs/sub"])

    assert [(c.name, c.exists) for c in checks] == [
        ("a.txt", True),
        ("b.txt", False),
        ("a.txt", False),
        ("sub", False),
    ]
    assert checks[0].file_id == present.id
    assert checks[0].relative_path == "Docs/a.txt"


@pytest.mark.asyncio
async def test_same_name_twice_in_one_batch(db, owner, root, resolver, limiter, tmp_path):
    """The second copy is skipped and the stored object survives."""
    from unidrive.storage.local import LocalStorageBackend
    from unidrive.storage.registry import StorageRegistry

    local = LocalStorageBackend(base_path=str(tmp_path))
    registry = StorageRegistry(default="local", backends={local.backend_type: local})

    report = await upload_files(
        db, registry, resolver, limiter, owner, root.id,
        [incoming("a.txt", b"first copy"), incoming("a.txt", b"second copy")],
    )

    assert (report.moved, report.skipped, report.errors) == (1, 1, 0)
    file = db.scalar(select(File))
    stored = (tmp_path / str(owner.id) / "a.txt").read_bytes()
    assert stored in (b"first copy", b"second copy")
    assert file.size == len(stored)
    assert resolver.active_keys == 0


@pytest.mark.asyncio
async def test_same_name_twice_with_rename(db, owner, root, resolver, limiter, tmp_path):
    from unidrive.storage.local import LocalStorageBackend
    from unidrive.storage.registry import StorageRegistry

    local = LocalStorageBackend(base_path=str(tmp_path))
    registry = StorageRegistry(default="local", backends={local.backend_type: local})

    report = await upload_files(
        db, registry, resolver, limiter, owner, root.id,
        [incoming("a.txt", b"one"), incoming("a.txt", b"two")],
        {"a.txt": Resolution.RENAME},
    )

    assert report.moved == 2
    files = db.scalars(select(File).order_by(File.name)).all()
    assert [f.name for f in files] == ["a (1).txt", "a.txt"]
    contents = {(tmp_path / str(owner.id) / f.name).read_bytes() for f in files}
    assert contents == {b"one", b"two"}

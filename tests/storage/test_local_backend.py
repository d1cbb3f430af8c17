"""
Unit tests for LocalStorageBackend.
"""
import pytest

from unidrive.storage.base import ByteRange, OwnerContext, StoredFile, StoredFolder
from unidrive.storage.exceptions import BackendError, ObjectNotFoundError
from unidrive.storage.local import LocalStorageBackend, path_locator


async def chunks(*parts: bytes):
    for part in parts:
        yield part


async def read_all(stream) -> bytes:
    return b"".join([chunk async for chunk in stream])


def test_path_locator_shape():
    owner = OwnerContext(7, ("Docs", "2024"))
    assert path_locator(owner, "a.txt") == "/7/Docs/2024/a.txt"
    assert path_locator(owner) == "/7/Docs/2024"
    assert path_locator(OwnerContext(7), "a.txt") == "/7/a.txt"


@pytest.mark.asyncio
async def test_upload_creates_parent_directories(tmp_path):
    storage = LocalStorageBackend(base_path=str(tmp_path))
    owner = OwnerContext(7, ("Docs", "2024"))

    result = await storage.upload(chunks(b"hello ", b"world"), "a.txt", "text/plain", owner)

    assert result.locator == "/7/Docs/2024/a.txt"
    assert result.thumb_locator is None
    assert (tmp_path / "7" / "Docs" / "2024" / "a.txt").read_bytes() == b"hello world"


@pytest.mark.asyncio
async def test_upload_failure_leaves_no_partial_file(tmp_path):
    """A stream that fails midway must not leave half a file behind."""
    storage = LocalStorageBackend(base_path=str(tmp_path))

    async def broken():
        yield b"first chunk"
        raise RuntimeError("client went away")

    with pytest.raises(RuntimeError):
        await storage.upload(broken(), "a.txt", "text/plain", OwnerContext(7))

    assert not (tmp_path / "7" / "a.txt").exists()


@pytest.mark.asyncio
async def test_stream_whole_and_range(tmp_path):
    storage = LocalStorageBackend(base_path=str(tmp_path), chunk_size=3)
    result = await storage.upload(chunks(b"0123456789"), "n.bin", "", OwnerContext(1))

    assert await read_all(storage.stream(result.locator)) == b"0123456789"
    assert await read_all(storage.stream(result.locator, ByteRange(2, 6))) == b"23456"
    assert await read_all(storage.stream(result.locator, ByteRange(9, 9))) == b"9"


@pytest.mark.asyncio
async def test_stream_missing_object(tmp_path):
    storage = LocalStorageBackend(base_path=str(tmp_path))

    with pytest.raises(ObjectNotFoundError):
        await read_all(storage.stream("/1/missing.txt"))


@pytest.mark.asyncio
async def test_locator_cannot_escape_base_path(tmp_path):
    storage = LocalStorageBackend(base_path=str(tmp_path / "store"))

    with pytest.raises(BackendError):
        await read_all(storage.stream("/1/../../etc/passwd"))


@pytest.mark.asyncio
async def test_move_relocates_file(tmp_path):
    storage = LocalStorageBackend(base_path=str(tmp_path))
    result = await storage.upload(chunks(b"x"), "a.txt", "", OwnerContext(1, ("A",)))

    moved = await storage.move(result.locator, "/1/B/a.txt")

    assert moved is True
    assert not (tmp_path / "1" / "A" / "a.txt").exists()
    assert (tmp_path / "1" / "B" / "a.txt").read_bytes() == b"x"


@pytest.mark.asyncio
async def test_move_missing_source(tmp_path):
    storage = LocalStorageBackend(base_path=str(tmp_path))

    with pytest.raises(ObjectNotFoundError):
        await storage.move("/1/nope.txt", "/1/other.txt")


@pytest.mark.asyncio
async def test_remove_files_and_empty_directories(tmp_path):
    storage = LocalStorageBackend(base_path=str(tmp_path))
    docs = OwnerContext(1, ("Docs",))
    inner = docs.child("Inner")
    a = await storage.upload(chunks(b"a"), "a.txt", "", docs)
    b = await storage.upload(chunks(b"b"), "b.txt", "", inner)

    await storage.remove(
        [StoredFile(a.locator), StoredFile(b.locator), StoredFile("/1/Docs/gone.txt")],
        [StoredFolder(docs), StoredFolder(inner)],
    )

    assert not (tmp_path / "1" / "Docs").exists()


@pytest.mark.asyncio
async def test_remove_keeps_non_empty_directories(tmp_path):
    """Directory removal is never recursive."""
    storage = LocalStorageBackend(base_path=str(tmp_path))
    docs = OwnerContext(1, ("Docs",))
    await storage.upload(chunks(b"keep"), "keep.txt", "", docs)

    await storage.remove([], [StoredFolder(docs)])

    assert (tmp_path / "1" / "Docs" / "keep.txt").read_bytes() == b"keep"


@pytest.mark.asyncio
async def test_list_under_prefix(tmp_path):
    storage = LocalStorageBackend(base_path=str(tmp_path))
    await storage.upload(chunks(b"12"), "a.txt", "", OwnerContext(1))
    await storage.upload(chunks(b"345"), "b.txt", "", OwnerContext(1, ("Docs",)))
    await storage.upload(chunks(b"6"), "c.txt", "", OwnerContext(2))

    objects = await storage.list("/1")

    assert {(o.locator, o.size) for o in objects} == {("/1/a.txt", 2), ("/1/Docs/b.txt", 3)}
    assert await storage.list("/99") == []

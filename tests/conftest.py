import os

# Keep the app off the on-disk database and the background sweeper in tests
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["TRASH_SWEEP_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from unidrive.database import Base, get_db
from unidrive.dependencies.storage import get_path_resolver, get_registry, get_upload_limiter
from unidrive.main import app
from unidrive.models import File, Folder, User
from unidrive.services.folders import ensure_root_folder, owner_context
from unidrive.services.limiter import ConcurrencyLimiter
from unidrive.services.paths import PathResolver
from unidrive.storage.base import (
    BackendType,
    ByteRange,
    StorageBackend,
    StoredObject,
    UploadResult,
)
from unidrive.storage.exceptions import BackendError, ObjectNotFoundError
from unidrive.storage.local import path_locator
from unidrive.storage.registry import StorageRegistry


class MemoryStorageBackend(StorageBackend):
    """
    In-memory backend for service and API tests.

    Path-addressed by default (locators look like the local backend's);
    with ``path_addressed=False`` it behaves like a message-addressed
    backend that issues its own locators and cannot move objects.

    Failure switches:
        fail_remove: remove() raises instead of swallowing
        fail_moves: old locators whose move raises BackendError
        truncate_to: stream() stops after this many bytes
    """

    def __init__(
        self,
        backend_type: BackendType = BackendType.LOCAL,
        path_addressed: bool = True,
        chunk_size: int = 64 * 1024,
    ):
        self.backend_type = backend_type
        self.path_addressed = path_addressed
        self.chunk_size = chunk_size
        self.objects: dict[str, bytes] = {}
        self.removed: list[str] = []
        self.removed_folders: list[tuple[str, ...]] = []
        self.fail_remove = False
        self.fail_moves: set[str] = set()
        self.truncate_to: int | None = None
        self.uploads = 0
        self._messages = 0

    async def upload(self, stream, name, mime_type, owner):
        data = bytearray()
        async for chunk in stream:
            data.extend(chunk)
        if self.path_addressed:
            locator = path_locator(owner, name)
        else:
            self._messages += 1
            locator = f"{self._messages}:doc{self._messages}"
        self.objects[locator] = bytes(data)
        self.uploads += 1
        return UploadResult(locator=locator)

    async def stream(self, locator: str, byte_range: ByteRange | None = None):
        if locator not in self.objects:
            raise ObjectNotFoundError(locator, backend=self.name)
        data = self.objects[locator]
        if byte_range is not None:
            data = data[byte_range.start:byte_range.end + 1]
        if self.truncate_to is not None:
            data = data[:self.truncate_to]
        for i in range(0, len(data), self.chunk_size):
            yield data[i:i + self.chunk_size]

    async def remove(self, files, folders):
        if self.fail_remove:
            raise BackendError("backend unavailable", backend=self.name)
        for item in files:
            self.objects.pop(item.locator, None)
            self.removed.append(item.locator)
        self.removed_folders.extend(f.owner.folder_path for f in folders)

    async def move(self, old_locator: str, new_locator: str) -> bool:
        if not self.path_addressed:
            return False
        if old_locator in self.fail_moves:
            raise BackendError("move failed", backend=self.name, locator=old_locator)
        if old_locator not in self.objects:
            raise ObjectNotFoundError(old_locator, backend=self.name)
        self.objects[new_locator] = self.objects.pop(old_locator)
        return True

    def locator_for(self, owner, name):
        return path_locator(owner, name) if self.path_addressed else None

    def prefix_for(self, owner):
        return path_locator(owner) if self.path_addressed else None

    async def list(self, prefix: str):
        base = prefix.rstrip("/") + "/"
        return [
            StoredObject(locator=locator, size=len(data))
            for locator, data in sorted(self.objects.items())
            if locator.startswith(base)
        ]


@pytest.fixture
def engine():
    """Fresh in-memory database per test; StaticPool keeps one shared connection."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def backend():
    return MemoryStorageBackend()


@pytest.fixture
def message_backend():
    """Telegram-like backend: own locators, no moves, no listing."""
    return MemoryStorageBackend(BackendType.TELEGRAM, path_addressed=False)


@pytest.fixture
def registry(backend):
    return StorageRegistry(default=backend.backend_type, backends={backend.backend_type: backend})


@pytest.fixture
def resolver():
    return PathResolver()


@pytest.fixture
def limiter():
    return ConcurrencyLimiter(capacity=10)


@pytest.fixture
def owner(db):
    """Owner with an unlimited quota and a root folder."""
    user = User(username="alice", max_storage_bytes=0)
    db.add(user)
    db.commit()
    db.refresh(user)
    ensure_root_folder(db, user)
    return user


@pytest.fixture
def root(db, owner):
    return ensure_root_folder(db, owner)


@pytest.fixture
def make_folder(db, owner):
    """Insert a folder row directly; ``deleted_at`` puts it in the trash."""

    def _make(parent: Folder, name: str, deleted_at=None, user: User | None = None) -> Folder:
        user = user or owner
        folder = Folder(
            name=name,
            parent_id=parent.id,
            user_id=user.id,
            is_deleted=deleted_at is not None,
            deleted_at=deleted_at,
        )
        db.add(folder)
        db.commit()
        db.refresh(folder)
        return folder

    return _make


@pytest.fixture
def make_file(db, owner, backend):
    """Insert a file row and put its bytes in the memory backend."""

    def _make(
        folder: Folder,
        name: str,
        data: bytes = b"hello",
        deleted_at=None,
        user: User | None = None,
        target: MemoryStorageBackend | None = None,
    ) -> File:
        user = user or owner
        target = target or backend
        locator = target.locator_for(owner_context(db, folder), name) or f"msg-{name}"
        target.objects[locator] = data
        file = File(
            name=name,
            mime_type="text/plain",
            size=len(data),
            storage_type=target.name,
            locator=locator,
            folder_id=folder.id,
            user_id=user.id,
            is_deleted=deleted_at is not None,
            deleted_at=deleted_at,
        )
        db.add(file)
        db.commit()
        db.refresh(file)
        return file

    return _make


@pytest.fixture
def client(db, owner, registry, resolver, limiter):
    """Test client acting as ``owner``, with database and storage overrides."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_path_resolver] = lambda: resolver
    app.dependency_overrides[get_upload_limiter] = lambda: limiter
    with TestClient(app, headers={"X-User-Id": str(owner.id)}) as c:
        yield c
    app.dependency_overrides.clear()

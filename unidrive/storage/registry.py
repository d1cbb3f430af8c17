"""
Backend registry.

Maps each BackendType to a configured backend instance. Files carry their
own tag, so reads and removals always reach the backend that holds the
object even after an owner's upload backend changes.
"""
from unidrive.config import settings
from unidrive.exceptions import ValidationError
from unidrive.storage.base import BackendType, StorageBackend


def build_backend(backend_type: BackendType) -> StorageBackend:
    """
    Construct a backend from configuration.

    Raises:
        ValueError: If the backend is not configured
    """
    if backend_type == BackendType.LOCAL:
        from unidrive.storage.local import LocalStorageBackend

        return LocalStorageBackend(base_path=settings.STORAGE_BASE_PATH)

    if backend_type == BackendType.WEBDAV:
        from unidrive.storage.webdav import WebDAVStorageBackend

        return WebDAVStorageBackend()

    if backend_type == BackendType.S3:
        from unidrive.storage.s3 import S3StorageBackend

        return S3StorageBackend()

    if backend_type == BackendType.TELEGRAM:
        from unidrive.storage.telegram import TelegramStorageBackend

        return TelegramStorageBackend()

    raise ValueError(f"Unknown storage backend: {backend_type}")


def parse_backend_type(value: str | BackendType) -> BackendType:
    try:
        return BackendType(value)
    except ValueError as e:
        raise ValidationError(f"Unknown storage backend: {value}") from e


class StorageRegistry:
    """
    Lazily built backend instances keyed by tag.

    Args:
        default: Backend used for new uploads when the owner has no override
        backends: Pre-built instances (tests inject fakes here)
    """

    def __init__(
        self,
        default: str | BackendType | None = None,
        backends: dict[BackendType, StorageBackend] | None = None,
    ):
        self.default_type = parse_backend_type(default or settings.STORAGE_BACKEND)
        self._backends: dict[BackendType, StorageBackend] = dict(backends or {})

    def get(self, backend_type: str | BackendType) -> StorageBackend:
        tag = parse_backend_type(backend_type)
        if tag not in self._backends:
            self._backends[tag] = build_backend(tag)
        return self._backends[tag]

    def for_upload(self, storage_type: str | None = None) -> StorageBackend:
        """Backend for new uploads: the owner's override, else the default."""
        return self.get(storage_type or self.default_type)

    async def aclose(self) -> None:
        for backend in self._backends.values():
            close = getattr(backend, "aclose", None)
            if close is not None:
                await close()
        self._backends.clear()

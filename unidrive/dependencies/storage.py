"""
Storage dependency injection for FastAPI.

The backend registry, upload limiter and path resolver are process-wide:
every request shares the same instances, so the upload bound and the
folder-creation locks hold across requests.
"""
from functools import lru_cache

from unidrive.config import settings
from unidrive.services.limiter import ConcurrencyLimiter
from unidrive.services.paths import PathResolver
from unidrive.storage.registry import StorageRegistry


@lru_cache
def get_registry() -> StorageRegistry:
    """
    Return the backend registry.

    STORAGE_BACKEND picks the default backend for new uploads; files keep
    being served by whichever backend their row names.
    """
    return StorageRegistry(default=settings.STORAGE_BACKEND)


@lru_cache
def get_upload_limiter() -> ConcurrencyLimiter:
    return ConcurrencyLimiter(capacity=settings.UPLOAD_CONCURRENCY)


@lru_cache
def get_path_resolver() -> PathResolver:
    return PathResolver()

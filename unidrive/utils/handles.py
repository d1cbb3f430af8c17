"""
Opaque folder handles.

Folder ids never leave the service in clear: every outward shape carries
a Fernet token (AES-128-CBC + HMAC-SHA256) keyed from SECRET_KEY. A handle
that fails to decrypt is indistinguishable from an unknown folder.
"""
import base64
import hashlib
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken

from unidrive.config import settings


@lru_cache
def _fernet(secret: str) -> Fernet:
    key = base64.urlsafe_b64encode(hashlib.sha256(secret.encode("utf-8")).digest())
    return Fernet(key)


def encrypt_id(value: int, secret: str | None = None) -> str:
    """Encrypt an integer id into a URL-safe handle."""
    token = _fernet(secret or settings.SECRET_KEY).encrypt(str(value).encode("ascii"))
    return token.decode("ascii")


def decrypt_id(handle: str | None, secret: str | None = None) -> int | None:
    """
    Decrypt a handle back to its integer id.

    Returns:
        The id, or None for empty, malformed or tampered handles
    """
    if not handle:
        return None
    try:
        raw = _fernet(secret or settings.SECRET_KEY).decrypt(handle.encode("ascii"))
        return int(raw.decode("ascii"))
    except (InvalidToken, UnicodeError, ValueError, TypeError):
        return None

"""
Utility functions for generating identifiers.

File ids are large random integers: opaque to clients and stable for the
lifetime of the file. Share tokens are short URL-safe strings.
"""
import secrets
import string
import uuid


# Base62 character set: [0-9a-zA-Z]
BASE62_CHARS = string.digits + string.ascii_letters

# Keep ids inside a signed 64-bit column
_FILE_ID_BITS = 63
MAX_FILE_ID = 2**_FILE_ID_BITS - 1


def generate_file_id() -> int:
    """
    Generate a random positive 63-bit file id.

    Returns:
        Integer in [1, 2**63 - 1]
    """
    num = int.from_bytes(uuid.uuid4().bytes, byteorder="big") >> (128 - _FILE_ID_BITS)
    return num or 1


def generate_share_token(length: int = 12) -> str:
    """
    Generate a URL-safe share token.

    Args:
        length: Number of base62 characters (default: 12, ~71 bits)

    Returns:
        Random token using [0-9a-zA-Z]
    """
    return "".join(secrets.choice(BASE62_CHARS) for _ in range(length))

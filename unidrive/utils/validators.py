from unidrive.config import settings
from unidrive.exceptions import ValidationError

RESERVED_NAMES = {".", ".."}


def validate_item_name(name: str | None) -> str:
    """
    Validate a file or folder name and return it stripped.

    Rules:
    - Not empty after stripping whitespace
    - No path separators (/ or \\)
    - Not "." or ".."
    - At most MAX_FILENAME_BYTES bytes when UTF-8 encoded

    Raises:
        ValidationError: When the name breaks a rule
    """
    if name is None or not name.strip():
        raise ValidationError("Name must not be empty")

    name = name.strip()
    if "/" in name or "\\" in name:
        raise ValidationError("Name must not contain path separators")
    if name in RESERVED_NAMES:
        raise ValidationError(f"'{name}' is not a valid name")
    if "\x00" in name:
        raise ValidationError("Name must not contain NUL characters")
    if len(name.encode("utf-8")) > settings.MAX_FILENAME_BYTES:
        raise ValidationError(
            f"Name must be at most {settings.MAX_FILENAME_BYTES} bytes"
        )
    return name


def split_relative_path(relative_path: str | None) -> list[str]:
    """
    Split an upload's relative path ("Docs/2024/a.txt") into validated segments.

    Empty segments are dropped, so "/Docs//a.txt" yields ["Docs", "a.txt"].

    Raises:
        ValidationError: When a segment is invalid or nothing remains
    """
    segments = [part for part in (relative_path or "").replace("\\", "/").split("/") if part.strip()]
    if not segments:
        raise ValidationError("Path must contain a file name")
    return [validate_item_name(part) for part in segments]

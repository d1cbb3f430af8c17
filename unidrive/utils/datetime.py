"""Datetime utilities for handling timezone-aware datetime objects."""
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_aware(dt: datetime | None) -> datetime | None:
    """
    Convert naive datetime to aware UTC datetime.

    Datetimes read back from SQLite lose their timezone but are always
    written as UTC, so a naive value is taken to be UTC.

    Args:
        dt: A datetime object, which may be naive or aware.

    Returns:
        A timezone-aware datetime in UTC, or None if input is None.

    Examples:
        >>> from datetime import datetime, timezone
        >>> naive_dt = datetime(2025, 1, 1, 12, 0)
        >>> aware_dt = ensure_aware(naive_dt)
        >>> aware_dt.tzinfo
        datetime.timezone.utc
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def deletion_stamp(dt: datetime | None = None) -> str:
    """
    Format a deletion time as the compact suffix used to free trashed names.

    Args:
        dt: Deletion time; defaults to now.

    Returns:
        The UTC time as YYYYMMDDHHMMSS, e.g. "20260119083015".
    """
    value = ensure_aware(dt) or utc_now()
    return value.astimezone(timezone.utc).strftime("%Y%m%d%H%M%S")

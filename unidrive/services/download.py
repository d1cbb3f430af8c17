"""
Streaming download proxy.

Plans a single-range or full response for a stored file and wraps the
backend stream so the response carries exactly the promised number of
bytes: surplus bytes are cut off, and a short stream aborts the response
instead of ending it early as if it were complete.
"""
import re
from dataclasses import dataclass, field
from typing import AsyncIterator
from urllib.parse import quote

from unidrive.logging_config import setup_logging
from unidrive.models import File
from unidrive.storage.base import ByteRange, StorageBackend
from unidrive.storage.exceptions import StreamTruncatedError
from unidrive.storage.registry import StorageRegistry

logger = setup_logging()

_RANGE_RE = re.compile(r"^bytes=(\d*)-(\d*)$")


class RangeNotSatisfiable(Exception):
    """The requested range starts at or beyond the end of the file."""


@dataclass
class DownloadPlan:
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: AsyncIterator[bytes] | None = None


def parse_range(header: str | None, size: int) -> ByteRange | None:
    """
    Parse a ``Range`` header against a file size.

    Supports ``bytes=a-b``, ``bytes=a-`` and ``bytes=-n``. Missing,
    malformed and multi-range headers return None (serve the whole file).

    Raises:
        RangeNotSatisfiable: If the range starts at or past the end
    """
    if not header:
        return None
    match = _RANGE_RE.match(header.strip().replace(" ", ""))
    if match is None:
        return None

    first, last = match.groups()
    if not first and not last:
        return None

    if not first:
        # Suffix range: the last n bytes
        suffix = int(last)
        if suffix == 0 or size == 0:
            raise RangeNotSatisfiable()
        return ByteRange(start=max(size - suffix, 0), end=size - 1)

    start = int(first)
    if last and int(last) < start:
        return None
    if start >= size:
        raise RangeNotSatisfiable()
    end = min(int(last), size - 1) if last else size - 1
    return ByteRange(start=start, end=end)


def content_disposition(filename: str, disposition: str = "attachment") -> str:
    """RFC 6266 header with an ASCII fallback and an RFC 5987 UTF-8 name."""
    fallback = filename.encode("ascii", "replace").decode("ascii").replace('"', "_").replace("?", "_")
    return f"{disposition}; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


async def counted_stream(
    chunks: AsyncIterator[bytes], expected: int, locator: str | None = None
) -> AsyncIterator[bytes]:
    """
    Yield exactly ``expected`` bytes from ``chunks``.

    Raises:
        StreamTruncatedError: If the backend stream ends early
    """
    received = 0
    try:
        if expected > 0:
            async for chunk in chunks:
                remaining = expected - received
                if len(chunk) > remaining:
                    chunk = chunk[:remaining]
                received += len(chunk)
                if chunk:
                    yield chunk
                if received >= expected:
                    break
    finally:
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()

    if received < expected:
        logger.error(f"Backend stream for {locator} ended after {received} of {expected} bytes")
        raise StreamTruncatedError(expected, received, locator=locator)


def plan_download(
    file: File,
    backend: StorageBackend,
    range_header: str | None = None,
    disposition: str = "attachment",
) -> DownloadPlan:
    """Build status, headers and body for serving ``file``."""
    headers = {
        "Accept-Ranges": "bytes",
        "Content-Type": file.mime_type or "application/octet-stream",
        "Content-Disposition": content_disposition(file.name, disposition),
    }
    size = file.size

    try:
        byte_range = parse_range(range_header, size)
    except RangeNotSatisfiable:
        headers["Content-Range"] = f"bytes */{size}"
        return DownloadPlan(status=416, headers=headers)

    if byte_range is None:
        headers["Content-Length"] = str(size)
        body = counted_stream(backend.stream(file.locator), size, file.locator) if size else None
        return DownloadPlan(status=200, headers=headers, body=body)

    headers["Content-Range"] = f"bytes {byte_range.start}-{byte_range.end}/{size}"
    headers["Content-Length"] = str(byte_range.length)
    body = counted_stream(backend.stream(file.locator, byte_range), byte_range.length, file.locator)
    return DownloadPlan(status=206, headers=headers, body=body)


async def _replay(first: bytes, rest: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    try:
        yield first
        async for chunk in rest:
            yield chunk
    finally:
        await rest.aclose()


async def prime_stream(body: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    """
    Pull the first chunk of ``body`` now.

    A missing object or an unreachable backend then raises here, before a
    response has been started, instead of breaking a response whose status
    line and Content-Length are already on the wire.

    Raises:
        ObjectNotFoundError: If the backend has no such object
        BackendError: If the backend read fails or returns nothing
    """
    first = await body.__anext__()
    return _replay(first, body)


async def open_download(
    file: File,
    registry: StorageRegistry,
    range_header: str | None = None,
    disposition: str = "attachment",
) -> DownloadPlan:
    """Plan a download through the backend that holds the file, body primed."""
    plan = plan_download(file, registry.get(file.storage_type), range_header, disposition)
    if plan.body is not None:
        plan.body = await prime_stream(plan.body)
    return plan

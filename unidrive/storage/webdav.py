"""
WebDAV storage implementation.

Path-addressed backend talking to any RFC 4918 server over httpx. Locators
are server paths relative to the configured base URL, e.g. ``/7/Docs/a.txt``.
Parent collections are created with MKCOL before the first PUT under a new
path; relocation uses MOVE with an absolute Destination URL.
"""
import xml.etree.ElementTree as ET
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import AsyncIterator
from urllib.parse import quote, unquote, urlsplit

import httpx

from unidrive.config import settings
from unidrive.logging_config import setup_logging
from unidrive.storage.base import (
    BackendType,
    ByteRange,
    OwnerContext,
    StorageBackend,
    StoredFile,
    StoredFolder,
    StoredObject,
    UploadResult,
    slice_stream,
)
from unidrive.storage.exceptions import BackendError, ObjectNotFoundError
from unidrive.storage.local import path_locator

logger = setup_logging()

DAV_NS = "{DAV:}"

PROPFIND_BODY = (
    '<?xml version="1.0" encoding="utf-8"?>'
    '<d:propfind xmlns:d="DAV:"><d:prop>'
    "<d:resourcetype/><d:getcontentlength/><d:getlastmodified/>"
    "</d:prop></d:propfind>"
)


class WebDAVStorageBackend(StorageBackend):
    """
    WebDAV storage backend.

    Args:
        url: Base URL of the share (default from config)
        username: Basic auth user (default from config)
        password: Basic auth password (default from config)
        timeout: Request timeout in seconds (default from config)
        transport: Optional httpx transport, used by tests
    """

    backend_type = BackendType.WEBDAV

    def __init__(
        self,
        url: str | None = None,
        username: str | None = None,
        password: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = (url or settings.WEBDAV_URL or "").rstrip("/")
        if not self.url:
            raise ValueError("WEBDAV_URL is not configured")
        self.base_path = urlsplit(self.url).path.rstrip("/")

        username = username if username is not None else settings.WEBDAV_USERNAME
        password = password if password is not None else settings.WEBDAV_PASSWORD
        auth = httpx.BasicAuth(username, password) if username else None

        self.client = httpx.AsyncClient(
            auth=auth,
            timeout=timeout or settings.STORAGE_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    def _url(self, locator: str) -> str:
        path = locator if locator.startswith("/") else "/" + locator
        return self.url + "/".join(quote(part, safe="") for part in path.split("/"))

    async def _request(self, method: str, locator: str, **kwargs) -> httpx.Response:
        try:
            return await self.client.request(method, self._url(locator), **kwargs)
        except httpx.HTTPError as e:
            raise BackendError(
                f"WebDAV {method} failed: {e}", backend=self.name, locator=locator
            ) from e

    async def _ensure_collections(self, locator: str) -> None:
        """MKCOL every ancestor collection of a locator, outermost first."""
        parts = [part for part in locator.split("/") if part][:-1]
        for depth in range(1, len(parts) + 1):
            collection = "/" + "/".join(parts[:depth])
            response = await self._request("MKCOL", collection)
            # 405: collection already exists
            if response.status_code >= 400 and response.status_code != 405:
                raise BackendError(
                    f"WebDAV MKCOL failed: {response.status_code}",
                    backend=self.name,
                    locator=collection,
                )

    async def upload(
        self,
        stream: AsyncIterator[bytes],
        name: str,
        mime_type: str,
        owner: OwnerContext,
    ) -> UploadResult:
        locator = path_locator(owner, name)
        await self._ensure_collections(locator)

        try:
            response = await self._request(
                "PUT",
                locator,
                content=stream,
                headers={"Content-Type": mime_type or "application/octet-stream"},
            )
        except BaseException:
            await self._discard(locator)
            raise

        if response.status_code >= 400:
            await self._discard(locator)
            raise BackendError(
                f"WebDAV upload failed: {response.status_code} {response.reason_phrase}",
                backend=self.name,
                locator=locator,
            )
        return UploadResult(locator=locator)

    async def stream(
        self,
        locator: str,
        byte_range: ByteRange | None = None,
    ) -> AsyncIterator[bytes]:
        headers = {}
        if byte_range:
            headers["Range"] = f"bytes={byte_range.start}-{byte_range.end}"

        try:
            async with self.client.stream("GET", self._url(locator), headers=headers) as response:
                if response.status_code == 404:
                    raise ObjectNotFoundError(locator, backend=self.name)
                if response.status_code >= 400:
                    raise BackendError(
                        f"WebDAV download failed: {response.status_code}",
                        backend=self.name,
                        locator=locator,
                    )

                if byte_range is None:
                    async for chunk in response.aiter_bytes():
                        yield chunk
                    return

                # 200 means the server ignored the Range header
                start = byte_range.start if response.status_code == 200 else 0
                async for chunk in slice_stream(response.aiter_bytes(), start, byte_range.length):
                    yield chunk
        except httpx.HTTPError as e:
            raise BackendError(
                f"WebDAV download failed: {e}", backend=self.name, locator=locator
            ) from e

    async def remove(self, files: list[StoredFile], folders: list[StoredFolder]) -> None:
        locators = []
        for item in files:
            locators.append(item.locator)
            if item.thumb_locator:
                locators.append(item.thumb_locator)
        for locator in locators:
            await self._delete_logged(locator)

        # DELETE on a collection is recursive, so only empty ones are removed
        for folder in sorted(folders, key=lambda f: len(f.owner.folder_path), reverse=True):
            collection = path_locator(folder.owner)
            try:
                entries = await self._propfind(collection)
            except BackendError as e:
                logger.warning(f"WebDAV listing failed for {collection}: {e}")
                continue
            if entries is not None and all(entry[0] == collection for entry in entries):
                await self._delete_logged(collection + "/")

    async def _delete_logged(self, locator: str) -> None:
        try:
            response = await self._request("DELETE", locator)
        except BackendError as e:
            logger.warning(f"WebDAV delete failed for {locator}: {e}")
            return
        if response.status_code >= 400 and response.status_code != 404:
            logger.warning(f"WebDAV delete failed for {locator}: {response.status_code}")

    async def move(self, old_locator: str, new_locator: str) -> bool:
        if old_locator == new_locator:
            return True

        await self._ensure_collections(new_locator)
        response = await self._request(
            "MOVE",
            old_locator,
            headers={"Destination": self._url(new_locator), "Overwrite": "T"},
        )
        if response.status_code == 404:
            raise ObjectNotFoundError(old_locator, backend=self.name)
        if response.status_code >= 400:
            raise BackendError(
                f"WebDAV move failed: {response.status_code} {response.reason_phrase}",
                backend=self.name,
                locator=old_locator,
            )
        return True

    def locator_for(self, owner: OwnerContext, name: str) -> str:
        return path_locator(owner, name)

    def prefix_for(self, owner: OwnerContext) -> str:
        return path_locator(owner)

    async def _discard(self, locator: str) -> None:
        try:
            await self._request("DELETE", locator)
        except BackendError as e:
            logger.warning(f"Could not remove partial upload {locator}: {e}")

    def _parse_multistatus(self, body: bytes) -> list[tuple[str, bool, int, datetime | None]]:
        """Return (locator, is_collection, size, modified_at) per response element."""
        entries = []
        root = ET.fromstring(body)
        for node in root.iter(f"{DAV_NS}response"):
            href = node.findtext(f"{DAV_NS}href") or ""
            path = unquote(urlsplit(href).path)
            if self.base_path and path.startswith(self.base_path):
                path = path[len(self.base_path):]
            prop = node.find(f"{DAV_NS}propstat/{DAV_NS}prop")
            is_collection = (
                prop is not None
                and prop.find(f"{DAV_NS}resourcetype/{DAV_NS}collection") is not None
            )
            size = 0
            modified_at = None
            if prop is not None:
                size_text = prop.findtext(f"{DAV_NS}getcontentlength")
                size = int(size_text) if size_text and size_text.isdigit() else 0
                modified_text = prop.findtext(f"{DAV_NS}getlastmodified")
                if modified_text:
                    try:
                        modified_at = parsedate_to_datetime(modified_text)
                    except (TypeError, ValueError):
                        modified_at = None
            entries.append(("/" + path.strip("/"), is_collection, size, modified_at))
        return entries

    async def _propfind(self, collection: str) -> list[tuple[str, bool, int, datetime | None]] | None:
        """Depth: 1 PROPFIND of a collection; None when it does not exist."""
        response = await self._request(
            "PROPFIND",
            collection + "/",
            content=PROPFIND_BODY,
            headers={"Depth": "1", "Content-Type": "application/xml"},
        )
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise BackendError(
                f"WebDAV listing failed: {response.status_code}",
                backend=self.name,
                locator=collection,
            )
        try:
            return self._parse_multistatus(response.content)
        except ET.ParseError as e:
            raise BackendError(
                f"WebDAV listing returned invalid XML: {e}",
                backend=self.name,
                locator=collection,
            ) from e

    async def list(self, prefix: str) -> list[StoredObject]:
        """Walk collections breadth-first with Depth: 1 PROPFIND requests."""
        objects = []
        pending = ["/" + prefix.strip("/")]
        seen = set()
        while pending:
            collection = pending.pop(0)
            if collection in seen:
                continue
            seen.add(collection)

            entries = await self._propfind(collection)
            for locator, is_collection, size, modified_at in entries or []:
                if locator == collection:
                    continue
                if is_collection:
                    pending.append(locator)
                else:
                    objects.append(StoredObject(locator=locator, size=size, modified_at=modified_at))
        return objects

"""
Telegram storage implementation.

Message-addressed backend on the Telegram Bot API. Every file is posted to
a chat as a document (or a photo for images) and addressed by
``<message_id>:<file_id>``: the file id is needed to download, the message
id to delete. Objects never move and cannot be listed.
"""
from typing import AsyncIterator

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

logger = setup_logging()


def split_locator(locator: str) -> tuple[int, str]:
    """
    Split ``<message_id>:<file_id>`` into its parts.

    Raises:
        BackendError: If the locator is malformed
    """
    message_id, sep, file_id = locator.partition(":")
    if not sep or not message_id.isdigit() or not file_id:
        raise BackendError("Malformed Telegram locator", backend="telegram", locator=locator)
    return int(message_id), file_id


class TelegramStorageBackend(StorageBackend):
    """
    Telegram Bot API storage backend.

    Args:
        token: Bot token (default from config)
        chat_id: Chat that receives uploads (default from config)
        api_base: API root, overridable for self-hosted Bot API servers
        timeout: Request timeout in seconds (default from config)
        transport: Optional httpx transport, used by tests
    """

    backend_type = BackendType.TELEGRAM

    def __init__(
        self,
        token: str | None = None,
        chat_id: str | None = None,
        api_base: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token = token or settings.TELEGRAM_BOT_TOKEN
        self.chat_id = chat_id or settings.TELEGRAM_CHAT_ID
        if not self.token or not self.chat_id:
            raise ValueError("TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID must be configured")
        root = (api_base or settings.TELEGRAM_API_BASE).rstrip("/")
        self.api_url = f"{root}/bot{self.token}"
        self.file_url = f"{root}/file/bot{self.token}"
        self.client = httpx.AsyncClient(
            timeout=timeout or settings.STORAGE_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _api(self, method: str, **kwargs) -> dict:
        """Call a Bot API method and return its ``result``."""
        try:
            response = await self.client.post(f"{self.api_url}/{method}", **kwargs)
            payload = response.json()
        except httpx.HTTPError as e:
            raise BackendError(f"Telegram {method} failed: {e}", backend=self.name) from e
        except ValueError as e:
            raise BackendError(
                f"Telegram {method} returned invalid JSON ({response.status_code})",
                backend=self.name,
            ) from e

        if not payload.get("ok"):
            raise BackendError(
                f"Telegram {method} failed: {payload.get('description', response.status_code)}",
                backend=self.name,
            )
        return payload.get("result") or {}

    async def upload(
        self,
        stream: AsyncIterator[bytes],
        name: str,
        mime_type: str,
        owner: OwnerContext,
    ) -> UploadResult:
        # multipart/form-data needs the whole payload
        content = b"".join([chunk async for chunk in stream])

        is_image = (mime_type or "").startswith("image/")
        method, field = ("sendPhoto", "photo") if is_image else ("sendDocument", "document")
        message = await self._api(
            method,
            data={"chat_id": self.chat_id},
            files={field: (name, content, mime_type or "application/octet-stream")},
        )

        message_id = message.get("message_id")
        file_id = thumb_id = None
        if is_image and message.get("photo"):
            # Sizes are ordered smallest first
            file_id = message["photo"][-1]["file_id"]
            thumb_id = message["photo"][0]["file_id"]
        elif message.get("document"):
            document = message["document"]
            file_id = document["file_id"]
            thumb = document.get("thumbnail") or document.get("thumb")
            if thumb:
                thumb_id = thumb["file_id"]
        else:
            for kind in ("audio", "video", "voice", "animation"):
                if message.get(kind):
                    file_id = message[kind]["file_id"]
                    break

        if message_id is None or not file_id:
            raise BackendError("Telegram response carried no file id", backend=self.name)

        return UploadResult(
            locator=f"{message_id}:{file_id}",
            thumb_locator=f"{message_id}:{thumb_id}" if thumb_id else None,
        )

    async def stream(
        self,
        locator: str,
        byte_range: ByteRange | None = None,
    ) -> AsyncIterator[bytes]:
        _, file_id = split_locator(locator)
        try:
            info = await self._api("getFile", data={"file_id": file_id})
        except BackendError as e:
            raise ObjectNotFoundError(locator, backend=self.name) from e
        file_path = info.get("file_path")
        if not file_path:
            raise ObjectNotFoundError(locator, backend=self.name)

        headers = {}
        if byte_range:
            headers["Range"] = f"bytes={byte_range.start}-{byte_range.end}"

        try:
            async with self.client.stream(
                "GET", f"{self.file_url}/{file_path}", headers=headers
            ) as response:
                if response.status_code >= 400:
                    raise BackendError(
                        f"Telegram download failed: {response.status_code}",
                        backend=self.name,
                        locator=locator,
                    )
                if byte_range is None:
                    async for chunk in response.aiter_bytes():
                        yield chunk
                    return

                start = byte_range.start if response.status_code == 200 else 0
                async for chunk in slice_stream(response.aiter_bytes(), start, byte_range.length):
                    yield chunk
        except httpx.HTTPError as e:
            raise BackendError(
                f"Telegram download failed: {e}", backend=self.name, locator=locator
            ) from e

    async def remove(self, files: list[StoredFile], folders: list[StoredFolder]) -> None:
        # Folders do not exist on this backend; thumbnails share the file's message
        message_ids = []
        for item in files:
            try:
                message_id, _ = split_locator(item.locator)
            except BackendError as e:
                logger.warning(f"Telegram remove skipped: {e}")
                continue
            if message_id not in message_ids:
                message_ids.append(message_id)

        for message_id in message_ids:
            try:
                await self._api(
                    "deleteMessage", json={"chat_id": self.chat_id, "message_id": message_id}
                )
            except BackendError as e:
                logger.warning(f"Telegram deleteMessage failed for {message_id}: {e}")

    async def move(self, old_locator: str, new_locator: str) -> bool:
        return False

    def locator_for(self, owner: OwnerContext, name: str) -> None:
        return None

    async def list(self, prefix: str) -> list[StoredObject]:
        return []

"""
S3 storage implementation.

Object-addressed backend on boto3. Keys mirror the folder tree,
``<owner>/<folder path>/<name>``, but S3 has no directories: a move is a
copy followed by a delete and is therefore not atomic. boto3 is blocking,
so every call runs in the default executor.
"""
import asyncio
import functools
import tempfile
from typing import AsyncIterator

import boto3
from botocore.exceptions import BotoCoreError, ClientError

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
)
from unidrive.storage.exceptions import BackendError, ObjectNotFoundError

logger = setup_logging()

# Uploads larger than this spill from memory to a temporary file
SPOOL_MAX_MEMORY = 8 * 1024 * 1024

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


def object_key(owner: OwnerContext, name: str | None = None) -> str:
    parts = [str(owner.owner_id), *owner.folder_path]
    if name is not None:
        parts.append(name)
    return "/".join(parts)


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3StorageBackend(StorageBackend):
    """
    S3-compatible storage backend (AWS, MinIO, R2).

    Args:
        bucket: Bucket name (default from config)
        client: Pre-built boto3 S3 client; built from config when omitted
        chunk_size: Read size for streaming (default from config)
    """

    backend_type = BackendType.S3

    def __init__(self, bucket: str | None = None, client=None, chunk_size: int | None = None):
        self.bucket = bucket or settings.S3_BUCKET
        if not self.bucket:
            raise ValueError("S3_BUCKET is not configured")
        self.chunk_size = chunk_size or settings.STREAM_CHUNK_SIZE
        self.client = client or boto3.client(
            "s3",
            region_name=settings.S3_REGION,
            endpoint_url=settings.S3_ENDPOINT_URL,
            aws_access_key_id=settings.S3_ACCESS_KEY_ID,
            aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY,
        )

    async def _call(self, func, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))

    async def upload(
        self,
        stream: AsyncIterator[bytes],
        name: str,
        mime_type: str,
        owner: OwnerContext,
    ) -> UploadResult:
        key = object_key(owner, name)

        with tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_MEMORY) as spool:
            # Nothing reaches the bucket until the whole stream is read
            async for chunk in stream:
                spool.write(chunk)
            spool.seek(0)

            try:
                await self._call(
                    self.client.upload_fileobj,
                    spool,
                    self.bucket,
                    key,
                    ExtraArgs={"ContentType": mime_type or "application/octet-stream"},
                )
            except (BotoCoreError, ClientError) as e:
                await self._delete_quietly(key)
                raise BackendError(
                    f"S3 upload failed: {e}", backend=self.name, locator=key
                ) from e

        return UploadResult(locator=key)

    async def stream(
        self,
        locator: str,
        byte_range: ByteRange | None = None,
    ) -> AsyncIterator[bytes]:
        params = {"Bucket": self.bucket, "Key": locator}
        if byte_range:
            params["Range"] = f"bytes={byte_range.start}-{byte_range.end}"

        try:
            response = await self._call(self.client.get_object, **params)
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                raise ObjectNotFoundError(locator, backend=self.name) from e
            raise BackendError(
                f"S3 download failed: {e}", backend=self.name, locator=locator
            ) from e
        except BotoCoreError as e:
            raise BackendError(
                f"S3 download failed: {e}", backend=self.name, locator=locator
            ) from e

        body = response["Body"]
        try:
            while True:
                chunk = await self._call(body.read, self.chunk_size)
                if not chunk:
                    break
                yield chunk
        except (BotoCoreError, ClientError) as e:
            raise BackendError(
                f"S3 download failed: {e}", backend=self.name, locator=locator
            ) from e
        finally:
            body.close()

    async def remove(self, files: list[StoredFile], folders: list[StoredFolder]) -> None:
        # Folders are key prefixes only; their objects are listed in files
        keys = []
        for item in files:
            keys.append(item.locator)
            if item.thumb_locator:
                keys.append(item.thumb_locator)
        await asyncio.gather(*(self._delete_quietly(key) for key in keys))

    async def move(self, old_locator: str, new_locator: str) -> bool:
        if old_locator == new_locator:
            return True

        try:
            await self._call(
                self.client.copy_object,
                Bucket=self.bucket,
                Key=new_locator,
                CopySource={"Bucket": self.bucket, "Key": old_locator},
            )
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                raise ObjectNotFoundError(old_locator, backend=self.name) from e
            raise BackendError(
                f"S3 move (copy) failed: {e}", backend=self.name, locator=old_locator
            ) from e
        except BotoCoreError as e:
            raise BackendError(
                f"S3 move (copy) failed: {e}", backend=self.name, locator=old_locator
            ) from e

        try:
            await self._call(self.client.delete_object, Bucket=self.bucket, Key=old_locator)
        except (BotoCoreError, ClientError) as e:
            logger.warning(f"S3 move left a stale copy at {old_locator}: {e}")
        return True

    def locator_for(self, owner: OwnerContext, name: str) -> str:
        return object_key(owner, name)

    def prefix_for(self, owner: OwnerContext) -> str:
        return object_key(owner)

    async def _delete_quietly(self, key: str) -> None:
        try:
            await self._call(self.client.delete_object, Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.warning(f"S3 delete failed for {key}: {e}")

    async def list(self, prefix: str) -> list[StoredObject]:
        prefix = prefix.strip("/") + "/"

        def _collect() -> list[StoredObject]:
            paginator = self.client.get_paginator("list_objects_v2")
            collected = []
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for item in page.get("Contents", []):
                    collected.append(
                        StoredObject(
                            locator=item["Key"],
                            size=item.get("Size", 0),
                            modified_at=item.get("LastModified"),
                        )
                    )
            return collected

        try:
            return await self._call(_collect)
        except (BotoCoreError, ClientError) as e:
            raise BackendError(
                f"S3 listing failed: {e}", backend=self.name, locator=prefix
            ) from e

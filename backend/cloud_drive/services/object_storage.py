"""Object storage abstraction. Local filesystem for dev, any S3-compatible bucket for production."""
import asyncio
import logging
import os
import secrets
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

import aiofiles
import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from cloud_drive.config import settings
from cloud_drive.errors import StorageError

logger = logging.getLogger(__name__)

FOLDER_OBJECT_PREFIX = "folder_"


def generate_folder_object_id() -> str:
    """Synthetic object id for folders; never a real storage reference."""
    return f"{FOLDER_OBJECT_PREFIX}{secrets.token_hex(4)}"


def is_folder_object_id(object_id: str | None) -> bool:
    return bool(object_id) and object_id.startswith(FOLDER_OBJECT_PREFIX)


@dataclass
class StoredObject:
    url: str
    object_id: str
    name: str
    size: int


def _object_key(original_name: str) -> str:
    ext = Path(original_name).suffix
    return f"{uuid.uuid4().hex}{ext}"


class ObjectStorage(ABC):
    """Upload/delete raw bytes. Implementations raise StorageError on failure."""

    @abstractmethod
    async def upload(self, data: bytes, file_name: str, content_type: str | None = None) -> StoredObject:
        ...

    @abstractmethod
    async def delete(self, object_id: str) -> None:
        ...


class LocalObjectStorage(ObjectStorage):
    """Writes objects under a base directory; the app serves them at FILE_STORAGE_BASE_URL."""

    def __init__(self, base_path: str | Path, base_url: str):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")

    async def upload(self, data: bytes, file_name: str, content_type: str | None = None) -> StoredObject:
        object_id = _object_key(file_name)
        try:
            async with aiofiles.open(self.base_path / object_id, "wb") as f:
                await f.write(data)
        except OSError as e:
            raise StorageError(f"Upload failed: {e}") from e
        return StoredObject(
            url=f"{self.base_url}/{object_id}",
            object_id=object_id,
            name=file_name,
            size=len(data),
        )

    async def delete(self, object_id: str) -> None:
        if not object_id:
            raise StorageError("Missing object id for delete request")
        path = self.base_path / os.path.basename(object_id)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise StorageError(f"Object {object_id} not found") from e
        except OSError as e:
            raise StorageError(f"Delete failed: {e}") from e


class S3ObjectStorage(ObjectStorage):
    """S3-compatible bucket (AWS S3, Cloudflare R2, MinIO). boto3 calls run in a worker thread."""

    def __init__(
        self,
        bucket: str,
        public_url: str,
        endpoint_url: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        region: str = "auto",
    ):
        self.bucket = bucket
        self.public_url = public_url.rstrip("/")
        self._client = boto3.client(
            "s3",
            endpoint_url=endpoint_url or None,
            aws_access_key_id=access_key_id or None,
            aws_secret_access_key=secret_access_key or None,
            config=BotoConfig(
                signature_version="s3v4",
                region_name=region,
                retries={"max_attempts": 3, "mode": "standard"},
            ),
        )

    async def upload(self, data: bytes, file_name: str, content_type: str | None = None) -> StoredObject:
        key = _object_key(file_name)
        extra = {"ContentType": content_type} if content_type else {}
        try:
            await asyncio.to_thread(
                self._client.put_object, Bucket=self.bucket, Key=key, Body=data, **extra
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Upload failed: {e}") from e
        return StoredObject(url=f"{self.public_url}/{key}", object_id=key, name=file_name, size=len(data))

    async def delete(self, object_id: str) -> None:
        if not object_id:
            raise StorageError("Missing object id for delete request")
        try:
            await asyncio.to_thread(self._client.delete_object, Bucket=self.bucket, Key=object_id)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Delete failed: {e}") from e


def create_object_storage() -> ObjectStorage:
    if settings.FILE_STORAGE_TYPE == "local":
        return LocalObjectStorage(settings.FILE_STORAGE_PATH, settings.FILE_STORAGE_BASE_URL)
    if settings.FILE_STORAGE_TYPE == "s3":
        return S3ObjectStorage(
            bucket=settings.S3_BUCKET,
            public_url=settings.S3_PUBLIC_URL,
            endpoint_url=settings.S3_ENDPOINT_URL,
            access_key_id=settings.S3_ACCESS_KEY_ID,
            secret_access_key=settings.S3_SECRET_ACCESS_KEY,
            region=settings.S3_REGION,
        )
    raise ValueError(f"Unknown storage type: {settings.FILE_STORAGE_TYPE}")


_object_storage: ObjectStorage | None = None


def get_object_storage() -> ObjectStorage:
    """Process-wide storage adapter (FastAPI dependency)."""
    global _object_storage
    if _object_storage is None:
        _object_storage = create_object_storage()
    return _object_storage

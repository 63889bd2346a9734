"""File operations: upload, listing, folders, sharing, star, trash and delete.

Each mutating operation follows the same sequence: check the caller owns
the record, mutate it, then wipe every cached listing page of that owner.
Invalidation is a prefix delete (``files:<owner>:*``) rather than per-key
tracking, so new listing parameters are covered without changes here.
"""
import logging
import math
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import asc, desc

from cloud_drive.errors import BadRequestError, ForbiddenError, NotFoundError, StorageError
from cloud_drive.models.file_record import FileRecord, FOLDER_TYPE, ROOT_FOLDER
from cloud_drive.schemas.file import FileResponse
from cloud_drive.services.cache import (
    CacheService,
    FILES_CACHE_TTL,
    files_cache_key,
    files_cache_pattern,
)
from cloud_drive.services.file_filters import (
    ById,
    View,
    ViewKind,
    build_file_filter,
    parse_folder_ref,
    storage_folder_value,
)
from cloud_drive.services.file_records import FileRecordStore, as_uuid
from cloud_drive.services.object_storage import (
    ObjectStorage,
    generate_folder_object_id,
    is_folder_object_id,
)

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "createdAt": FileRecord.created_at,
    "created_at": FileRecord.created_at,
    "updatedAt": FileRecord.updated_at,
    "updated_at": FileRecord.updated_at,
    "name": FileRecord.name,
    "size": FileRecord.size,
    "type": FileRecord.type,
}


def generate_share_id() -> str:
    return secrets.token_hex(8)


def serialize_file(record: FileRecord) -> dict:
    return FileResponse.model_validate(record).to_json()


@dataclass
class DeleteOutcome:
    """What a delete actually removed.

    ``blob_deleted`` is False when any storage object (the record's own or a
    child's) could not be removed; the metadata is deleted regardless.
    """

    record_deleted: bool = False
    blob_deleted: bool = True
    children_deleted: int = 0
    failed_objects: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "recordDeleted": self.record_deleted,
            "blobDeleted": self.blob_deleted,
            "childrenDeleted": self.children_deleted,
        }


class FileService:
    """Composes the record store, object storage and cache for one request."""

    def __init__(
        self,
        store: FileRecordStore,
        storage: ObjectStorage,
        cache: CacheService,
        *,
        frontend_url: str = "",
        folder_delete_depth: int = 1,
        max_upload_bytes: Optional[int] = None,
    ):
        self.store = store
        self.storage = storage
        self.cache = cache
        self.frontend_url = frontend_url.rstrip("/")
        self.folder_delete_depth = folder_delete_depth
        self.max_upload_bytes = max_upload_bytes

    # ── helpers ────────────────────────────────────────────────────

    async def get_owned(self, file_id, owner_id: uuid.UUID) -> FileRecord:
        """Record ``file_id`` if it exists and belongs to ``owner_id``."""
        record = await self.store.get(file_id)
        if record is None:
            raise NotFoundError("File not found")
        if record.owner_id != owner_id:
            raise ForbiddenError("Not authorized")
        return record

    async def invalidate_listings(self, owner_id: uuid.UUID) -> None:
        # The cache layer absorbs its own failures; a stale page is never fatal.
        await self.cache.delete_pattern(files_cache_pattern(owner_id))

    async def _delete_blob(self, record: FileRecord) -> bool:
        if not record.object_id or is_folder_object_id(record.object_id):
            return True
        try:
            await self.storage.delete(record.object_id)
            logger.info("Deleted object %s (%s)", record.object_id, record.name)
            return True
        except StorageError as e:
            logger.warning("Object storage deletion failed for %s: %s", record.name, e.message)
            return False

    async def _purge(self, record: FileRecord, depth: int, outcome: DeleteOutcome) -> None:
        """Delete a record, its blob and, for folders, up to ``depth`` levels of contents."""
        if record.is_folder and depth > 0:
            for child in await self.store.find_children(record.owner_id, str(record.id)):
                await self._purge(child, depth - 1, outcome)
                outcome.children_deleted += 1

        if not await self._delete_blob(record):
            outcome.blob_deleted = False
            outcome.failed_objects.append(record.object_id)
        await self.store.delete(record)

    def check_upload_size(self, size: Optional[int]) -> None:
        """Reject uploads over the limit; an unknown size passes."""
        if size is not None and self.max_upload_bytes is not None and size > self.max_upload_bytes:
            raise BadRequestError("File too large")

    # ── operations ─────────────────────────────────────────────────

    async def upload_file(
        self,
        owner_id: uuid.UUID,
        data: Optional[bytes],
        file_name: Optional[str],
        content_type: Optional[str] = None,
        folder_id: Optional[str] = None,
    ) -> FileRecord:
        """Store bytes first, then create the record, so no record exists without an object."""
        if data is None or not file_name:
            raise BadRequestError("No file uploaded")
        self.check_upload_size(len(data))

        ref = parse_folder_ref(folder_id)
        parent = storage_folder_value(ref)
        if isinstance(ref, ById):
            folder_uuid = as_uuid(ref.id)
            folder = None
            if folder_uuid is not None:
                folder = await self.store.find_one(
                    FileRecord.id == folder_uuid,
                    FileRecord.owner_id == owner_id,
                    FileRecord.type == FOLDER_TYPE,
                )
            if folder is None:
                raise NotFoundError("Folder not found")
            parent = str(folder.id)

        try:
            stored = await self.storage.upload(data, file_name, content_type)
        except StorageError as e:
            logger.error("Upload to object storage failed for %s: %s", file_name, e.message)
            raise StorageError("Upload failed") from e

        record = await self.store.create(
            name=file_name,
            type=content_type or "application/octet-stream",
            size=len(data),
            url=stored.url,
            object_id=stored.object_id,
            owner_id=owner_id,
            folder=parent,
        )
        await self.invalidate_listings(owner_id)
        return record

    async def list_files(
        self,
        owner_id: uuid.UUID,
        *,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "createdAt",
        order: str = "desc",
        folder: Optional[str] = None,
        search: Optional[str] = None,
    ) -> dict[str, Any]:
        """One page of a view, served from cache when the exact query was seen recently."""
        if sort_by not in SORT_FIELDS:
            raise BadRequestError(f"Cannot sort by '{sort_by}'")

        ref = parse_folder_ref(folder)
        if isinstance(ref, ById):
            folder = ref.id

        cache_key = files_cache_key(owner_id, page, limit, sort_by, order, folder, search)
        cached = await self.cache.get(cache_key)
        # Anything but a listing payload under this key is treated as a miss
        if isinstance(cached, dict):
            logger.debug("Files loaded from cache for user %s", owner_id)
            return cached

        file_filter = build_file_filter(
            owner_id,
            ref,
            starred=ref == View(ViewKind.STARRED),
            trashed=ref == View(ViewKind.TRASH),
            search=search,
        )
        column = SORT_FIELDS[sort_by]
        direction = desc if order == "desc" else asc

        records = await self.store.find(
            file_filter,
            order_by=(direction(column), direction(FileRecord.id)),
            skip=(page - 1) * limit,
            limit=limit,
        )
        total = await self.store.count(file_filter)

        payload = {
            "files": [serialize_file(r) for r in records],
            "count": len(records),
            "totalFiles": total,
            "currentPage": page,
            "totalPages": math.ceil(total / limit),
        }
        await self.cache.set(cache_key, payload, FILES_CACHE_TTL)
        return payload

    async def search_files(
        self,
        owner_id: uuid.UUID,
        query: Optional[str],
        folder: Optional[str] = None,
    ) -> list[FileRecord]:
        file_filter = build_file_filter(owner_id, folder, trashed=False, search=query)
        return await self.store.find(file_filter, order_by=(desc(FileRecord.created_at),))

    async def get_file(self, owner_id: uuid.UUID, file_id) -> FileRecord:
        return await self.get_owned(file_id, owner_id)

    async def create_folder(self, owner_id: uuid.UUID, folder_name: Optional[str]) -> FileRecord:
        name = (folder_name or "").strip()
        if not name:
            raise BadRequestError("Folder name required")

        existing = await self.store.find_one(
            FileRecord.owner_id == owner_id,
            FileRecord.name == name,
            FileRecord.type == FOLDER_TYPE,
        )
        if existing is not None:
            raise BadRequestError("Folder already exists")

        folder = await self.store.create(
            name=name,
            type=FOLDER_TYPE,
            size=0,
            url="#",
            object_id=generate_folder_object_id(),
            owner_id=owner_id,
            folder=ROOT_FOLDER,
        )
        await self.invalidate_listings(owner_id)
        return folder

    async def delete_file(self, owner_id: uuid.UUID, file_id) -> tuple[FileRecord, DeleteOutcome]:
        """Delete a file, or a folder together with its contents."""
        record = await self.get_owned(file_id, owner_id)
        outcome = DeleteOutcome()
        await self._purge(record, self.folder_delete_depth, outcome)
        outcome.record_deleted = True
        await self.invalidate_listings(owner_id)
        return record, outcome

    async def permanent_delete(self, owner_id: uuid.UUID, file_id) -> tuple[FileRecord, DeleteOutcome]:
        logger.info("Permanently deleting %s for user %s", file_id, owner_id)
        return await self.delete_file(owner_id, file_id)

    async def share_file(self, owner_id: uuid.UUID, file_id) -> dict[str, str]:
        record = await self.get_owned(file_id, owner_id)
        record.share_id = generate_share_id()
        record.is_shared = True
        await self.store.save(record)
        await self.invalidate_listings(owner_id)
        return {
            "shareLink": f"{self.frontend_url}/shared/{record.share_id}",
            "shareId": record.share_id,
        }

    async def unshare_file(self, owner_id: uuid.UUID, file_id) -> FileRecord:
        """Revoke public access; the old token never resolves again."""
        record = await self.get_owned(file_id, owner_id)
        record.is_shared = False
        record.share_id = None
        await self.store.save(record)
        await self.invalidate_listings(owner_id)
        return record

    async def get_shared_file(self, share_id: str) -> FileRecord:
        record = await self.store.get_by_share_id(share_id)
        if record is None or not record.is_shared:
            raise NotFoundError("Shared file not found")
        return record

    async def toggle_star(self, owner_id: uuid.UUID, file_id) -> FileRecord:
        record = await self.get_owned(file_id, owner_id)
        record.is_starred = not record.is_starred
        await self.store.save(record)
        await self.invalidate_listings(owner_id)
        return record

    async def move_to_trash(self, owner_id: uuid.UUID, file_id) -> FileRecord:
        record = await self.get_owned(file_id, owner_id)
        record.is_trashed = True
        record.trashed_at = datetime.now(timezone.utc)
        await self.store.save(record)
        await self.invalidate_listings(owner_id)
        return record

    async def restore_from_trash(self, owner_id: uuid.UUID, file_id) -> FileRecord:
        record = await self.get_owned(file_id, owner_id)
        if not record.is_trashed:
            raise BadRequestError("File is not in trash")
        record.is_trashed = False
        record.trashed_at = None
        await self.store.save(record)
        await self.invalidate_listings(owner_id)
        return record

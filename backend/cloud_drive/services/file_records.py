"""Persistence for file and folder metadata."""
import uuid
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cloud_drive.models.file_record import FileRecord
from cloud_drive.services.file_filters import FileFilter


def as_uuid(value) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class FileRecordStore:
    """Query/mutation interface over the ``files`` table. Every mutation commits."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, file_id) -> Optional[FileRecord]:
        """Record by id; malformed ids are treated as absent."""
        record_id = as_uuid(file_id)
        if record_id is None:
            return None
        return await self.db.get(FileRecord, record_id)

    async def find_one(self, *criteria) -> Optional[FileRecord]:
        result = await self.db.execute(select(FileRecord).where(*criteria).limit(1))
        return result.scalar_one_or_none()

    async def find(
        self,
        file_filter: FileFilter,
        *,
        order_by: Sequence = (),
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> list[FileRecord]:
        query = select(FileRecord).where(file_filter.to_clause())
        if order_by:
            query = query.order_by(*order_by)
        if skip:
            query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count(self, file_filter: FileFilter) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(FileRecord).where(file_filter.to_clause())
        )
        return result.scalar_one()

    async def find_children(self, owner_id: uuid.UUID, folder_id: str) -> list[FileRecord]:
        """Direct children of a folder, trashed or not."""
        result = await self.db.execute(
            select(FileRecord).where(FileRecord.owner_id == owner_id, FileRecord.folder == folder_id)
        )
        return list(result.scalars().all())

    async def get_by_share_id(self, share_id: str) -> Optional[FileRecord]:
        return await self.find_one(FileRecord.share_id == share_id)

    async def create(self, **fields) -> FileRecord:
        record = FileRecord(**fields)
        self.db.add(record)
        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def save(self, record: FileRecord) -> FileRecord:
        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def delete(self, record: FileRecord) -> None:
        await self.db.delete(record)
        await self.db.commit()

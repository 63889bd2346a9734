"""File request/response schemas."""
import uuid
from typing import Optional
from datetime import datetime
from pydantic import Field
from cloud_drive.schemas.base import CamelModel, CamelORMModel


class FileResponse(CamelORMModel):
    id: uuid.UUID
    name: str
    type: str
    size: int
    url: str
    object_id: str
    owner_id: uuid.UUID
    folder: Optional[str] = None
    share_id: Optional[str] = None
    is_shared: bool = False
    is_starred: bool = False
    is_trashed: bool = False
    trashed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class FolderCreate(CamelModel):
    folder_name: str = Field("", max_length=255)

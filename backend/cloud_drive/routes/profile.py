"""Profile API routes."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, File as FastAPIFile, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from cloud_drive.database import get_db
from cloud_drive.dependencies import get_current_user
from cloud_drive.errors import BadRequestError, NotFoundError, StorageError
from cloud_drive.models.user import User
from cloud_drive.schemas.user import UserResponse
from cloud_drive.services import responses
from cloud_drive.services.cache import CacheService, get_cache, user_cache_key
from cloud_drive.services.object_storage import ObjectStorage, get_object_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/profile", tags=["profile"])


@router.get("/me")
async def get_profile(user: UserResponse = Depends(get_current_user)):
    return responses.success({"user": user.to_json()})


@router.patch("/update")
async def update_profile(
    name: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = FastAPIFile(None),
    current: UserResponse = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    storage: ObjectStorage = Depends(get_object_storage),
):
    """Update display name and/or avatar image."""
    user = await db.get(User, current.id)
    if user is None:
        raise NotFoundError("User not found")

    if name is not None:
        name = name.strip()
        if not 2 <= len(name) <= 50:
            raise BadRequestError("Name must be between 2 and 50 characters")
        user.name = name

    if avatar is not None:
        data = await avatar.read()
        try:
            stored = await storage.upload(data, f"avatar-{user.id}{_suffix(avatar.filename)}", avatar.content_type)
        except StorageError as e:
            logger.error("Avatar upload failed for user %s: %s", user.id, e.message)
            raise StorageError("Avatar upload failed") from e
        user.avatar = stored.url

    await db.commit()
    await db.refresh(user)
    await cache.delete(user_cache_key(user.id))

    return responses.success({"user": UserResponse.model_validate(user).to_json()}, "Profile updated")


def _suffix(filename: Optional[str]) -> str:
    if filename and "." in filename:
        return "." + filename.rsplit(".", 1)[1]
    return ""

"""FastAPI dependencies: current user resolution and service construction."""
import logging

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from cloud_drive.config import settings
from cloud_drive.database import get_db
from cloud_drive.errors import UnauthorizedError
from cloud_drive.models.user import User
from cloud_drive.schemas.user import UserResponse
from cloud_drive.security import TokenError, decode_access_token
from cloud_drive.services.cache import CacheService, USER_CACHE_TTL, get_cache, user_cache_key
from cloud_drive.services.file_records import FileRecordStore, as_uuid
from cloud_drive.services.file_service import FileService
from cloud_drive.services.object_storage import ObjectStorage, get_object_storage

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
) -> UserResponse:
    """Resolve the bearer token to a user, reading through the identity cache."""
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Not authorized, no token")

    try:
        payload = decode_access_token(credentials.credentials)
    except TokenError as e:
        raise UnauthorizedError("Not authorized, token failed") from e

    key = user_cache_key(payload["id"])
    cached = await cache.get(key)
    if isinstance(cached, dict):
        return UserResponse.model_validate(cached)

    user_id = as_uuid(payload["id"])
    user = await db.get(User, user_id) if user_id else None
    if user is None:
        raise UnauthorizedError("User not found")

    current = UserResponse.model_validate(user)
    await cache.set(key, current.to_json(), USER_CACHE_TTL)
    return current


def get_file_service(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    storage: ObjectStorage = Depends(get_object_storage),
) -> FileService:
    return FileService(
        FileRecordStore(db),
        storage,
        cache,
        frontend_url=settings.FRONTEND_URL,
        folder_delete_depth=settings.FOLDER_DELETE_DEPTH,
        max_upload_bytes=settings.MAX_UPLOAD_BYTES,
    )

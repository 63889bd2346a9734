"""Health check route."""
import logging
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cloud_drive.database import get_db
from cloud_drive.services.cache import CacheService, get_cache

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health_check(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Verify API, database and cache connectivity."""
    cache_status = "connected" if await cache.ping() else "unavailable"
    try:
        await db.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.error("Health check database query failed: %s", e)
        return {"status": "error", "database": str(e), "cache": cache_status}
    return {"status": "ok", "database": "connected", "cache": cache_status}

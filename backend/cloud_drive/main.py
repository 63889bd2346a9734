"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from cloud_drive.config import settings
from cloud_drive.database import create_tables, engine
from cloud_drive.errors import register_exception_handlers
from cloud_drive.services.cache import close_cache, get_cache
from cloud_drive.services.object_storage import LocalObjectStorage, get_object_storage

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup, check the cache, close connections on shutdown."""
    await create_tables()

    # The app runs without Redis; listings just stop being cached
    if await get_cache().ping():
        logger.info("Redis connected")
    else:
        logger.warning("Redis unavailable, continuing without cache")

    yield

    await close_cache()
    await engine.dispose()


app = FastAPI(
    title="Cloud Drive API",
    version="1.0.0",
    description="File storage backend: auth, files, folders, sharing, star and trash.",
    lifespan=lifespan,
)

# CORS
origins = [o.strip() for o in settings.FRONTEND_URL.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


# Register routers
from cloud_drive.routes.auth import router as auth_router
from cloud_drive.routes.files import router as files_router
from cloud_drive.routes.health import router as health_router
from cloud_drive.routes.profile import router as profile_router
app.include_router(health_router)
app.include_router(auth_router)
app.include_router(files_router)
app.include_router(profile_router)

# Local storage objects are served by the app itself
if settings.FILE_STORAGE_TYPE == "local":
    local_storage = get_object_storage()
    if isinstance(local_storage, LocalObjectStorage):
        app.mount("/uploads", StaticFiles(directory=local_storage.base_path), name="uploads")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("cloud_drive.main:app", host="0.0.0.0", port=settings.API_PORT, reload=True)

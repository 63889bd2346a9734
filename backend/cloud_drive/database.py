"""Async SQLAlchemy engine, session factory and schema bootstrap.

Routes never open sessions themselves; they take one per request:

    @router.get("/files")
    async def list_files(db: AsyncSession = Depends(get_db)):
        ...

PostgreSQL (asyncpg) in deployments, SQLite (aiosqlite) for local runs.
"""
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from cloud_drive.config import settings
from cloud_drive.models import Base


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_size": 10, "max_overflow": 20, "pool_pre_ping": True}


engine = create_async_engine(settings.DATABASE_URL, echo=False, **_engine_options(settings.DATABASE_URL))

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(bind: AsyncEngine = engine) -> None:
    """Create the users and files tables if they do not exist yet."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    """Per-request session; closed when the response is sent."""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()

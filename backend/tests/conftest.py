"""Shared fixtures: in-memory database, in-memory Redis double, local object storage."""
import fnmatch
import time

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from cloud_drive.config import settings
from cloud_drive.database import create_tables, get_db
from cloud_drive.errors import register_exception_handlers
from cloud_drive.models import Base
from cloud_drive.services.cache import CacheService, get_cache
from cloud_drive.services.file_records import FileRecordStore
from cloud_drive.services.file_service import FileService
from cloud_drive.services.object_storage import LocalObjectStorage, get_object_storage

# Keep password hashing cheap in tests
settings.BCRYPT_ROUNDS = 4


class InMemoryRedis:
    """Async Redis double covering the commands CacheService uses."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.expiry: dict[str, float] = {}

    def _alive(self, key):
        deadline = self.expiry.get(key)
        if deadline is not None and deadline <= time.monotonic():
            self.store.pop(key, None)
            self.expiry.pop(key, None)
        return key in self.store

    async def setex(self, key, ttl, value):
        self.store[key] = value
        self.expiry[key] = time.monotonic() + ttl
        return True

    async def get(self, key):
        return self.store[key] if self._alive(key) else None

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self._alive(key):
                removed += 1
            self.store.pop(key, None)
            self.expiry.pop(key, None)
        return removed

    async def scan_iter(self, match="*"):
        for key in list(self.store):
            if self._alive(key) and fnmatch.fnmatchcase(key, match):
                yield key

    async def exists(self, *keys):
        return sum(1 for key in keys if self._alive(key))

    async def ttl(self, key):
        if not self._alive(key):
            return -2
        deadline = self.expiry.get(key)
        if deadline is None:
            return -1
        return int(round(deadline - time.monotonic()))

    async def flushdb(self):
        self.store.clear()
        self.expiry.clear()
        return True

    async def ping(self):
        return True

    async def aclose(self):
        pass


class UnreachableRedis:
    """Every command fails the way a dropped connection does."""

    def __getattr__(self, name):
        async def fail(*args, **kwargs):
            raise RedisConnectionError("Connection refused")
        return fail

    def scan_iter(self, match="*"):
        raise RedisConnectionError("Connection refused")


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_tables(engine)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def redis_double():
    return InMemoryRedis()


@pytest.fixture
def cache(redis_double):
    return CacheService(redis_double)


@pytest.fixture
def broken_cache():
    return CacheService(UnreachableRedis())


@pytest.fixture
def storage(tmp_path):
    return LocalObjectStorage(tmp_path / "objects", "http://test/uploads")


@pytest.fixture
def file_service(db_session, storage, cache):
    return FileService(
        FileRecordStore(db_session),
        storage,
        cache,
        frontend_url="http://frontend.test",
        folder_delete_depth=1,
    )


@pytest.fixture
def app(session_maker, cache, storage):
    """FastAPI app with every router, wired to the test doubles."""
    from cloud_drive.routes import auth, files, health, profile

    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(files.router)
    app.include_router(profile.router)

    async def get_test_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = get_test_db
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_object_storage] = lambda: storage
    return app


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def register(client: AsyncClient, email: str, name: str = "Test User", password: str = "secret123") -> dict:
    """Register through the API and return auth headers plus the user payload."""
    response = await client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": password},
    )
    assert response.status_code == 201, response.text
    body = response.json()
    return {
        "headers": {"Authorization": f"Bearer {body['accessToken']}"},
        "user": body["user"],
    }


@pytest.fixture
async def alice(client):
    return await register(client, "alice@example.com", name="Alice")


@pytest.fixture
async def bob(client):
    return await register(client, "bob@example.com", name="Bob")


@pytest.fixture
def register_user(client):
    async def _register(email: str, name: str = "Test User", password: str = "secret123") -> dict:
        return await register(client, email, name=name, password=password)
    return _register

"""Shared pytest fixtures for service, store, cache and API tests.

Every test gets a fresh file-backed SQLite database through aiosqlite and an
AsyncMock Redis client backed by a plain dict.
"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
import redis.asyncio as redis
from unittest.mock import AsyncMock
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from shortlinks.cache import ResolutionCache
from shortlinks.config import Settings
from shortlinks.database import Database
from shortlinks.dependencies import ServiceManager
from shortlinks.enums import Role
from shortlinks.link_service import LinkService
from shortlinks.main import app
from shortlinks.policy import CallerIdentity
from shortlinks.store import LinkStore


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        APP_ENV="test",
        BASE_URL="http://sho.rt",
        LOG_LEVEL="DEBUG",
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'shortlinks.db'}",
        REDIS_URL="redis://localhost:6379/15",
    )


@pytest_asyncio.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    db = Database(settings.DATABASE_URL)
    await db.init()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    async with database.session() as session:
        yield session


@pytest.fixture
def redis_data() -> dict:
    return {}


@pytest.fixture
def mock_redis(redis_data: dict) -> AsyncMock:
    """AsyncMock Redis client whose get/setex/delete work against ``redis_data``."""

    def _setex(key, ttl, value):
        redis_data[key] = value
        return True

    def _delete(*keys):
        return sum(1 for key in keys if redis_data.pop(key, None) is not None)

    client = AsyncMock(spec=redis.Redis)
    client.get = AsyncMock(side_effect=lambda key: redis_data.get(key))
    client.setex = AsyncMock(side_effect=_setex)
    client.delete = AsyncMock(side_effect=_delete)
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def cache(mock_redis: AsyncMock, settings: Settings) -> ResolutionCache:
    return ResolutionCache(
        mock_redis,
        ttl_seconds=settings.CACHE_TTL_SECONDS,
        key_prefix=settings.CACHE_KEY_PREFIX,
    )


@pytest.fixture
def store(db_session: AsyncSession) -> LinkStore:
    return LinkStore(db_session)


@pytest.fixture
def link_service(store: LinkStore, cache: ResolutionCache, settings: Settings) -> LinkService:
    return LinkService(store, cache, settings=settings)


@pytest.fixture
def owner() -> CallerIdentity:
    return CallerIdentity(id="user-1", role=Role.USER)


@pytest.fixture
def stranger() -> CallerIdentity:
    return CallerIdentity(id="user-2", role=Role.USER)


@pytest.fixture
def admin() -> CallerIdentity:
    return CallerIdentity(id="admin-1", role=Role.ADMIN)


@pytest_asyncio.fixture
async def client(settings: Settings, database: Database, mock_redis: AsyncMock) -> AsyncGenerator[AsyncClient, None]:
    manager = ServiceManager(settings, database=database, redis_client=mock_redis)
    original = app.state.service_manager
    app.state.service_manager = manager

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.state.service_manager = original


@pytest.fixture
def auth():
    """Headers the upstream authentication layer would set for ``caller``."""

    def _headers(caller: CallerIdentity) -> dict[str, str]:
        return {"X-User-Id": caller.id, "X-User-Role": caller.role.value}

    return _headers

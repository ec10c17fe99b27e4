"""Shared pytest fixtures for API, database and cache tests.

Tests run against an in-memory SQLite database and a MemoryCache so that no
PostgreSQL or Redis is needed.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("CACHE_BACKEND", "memory")

import uuid
from collections.abc import AsyncGenerator
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from shortlinks.cache import MemoryCache
from shortlinks.config import Settings
from shortlinks.database import Base, build_engine, get_db
from shortlinks.dependencies import ServiceManager
from shortlinks.enums import CacheBackend
from shortlinks.main import app
from shortlinks.models import Plan, Subscription

TEST_BASE_URL = "https://sho.rt"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATABASE_URL="sqlite+aiosqlite://",
        CACHE_BACKEND=CacheBackend.MEMORY,
        BASE_URL=TEST_BASE_URL,
        KAFKA_ENABLED=False,
    )


@pytest_asyncio.fixture(scope="function")
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = build_engine("sqlite+aiosqlite://")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def memory_cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def services(settings: Settings, memory_cache: MemoryCache) -> ServiceManager:
    return ServiceManager(settings, cache=memory_cache)


@pytest_asyncio.fixture(scope="function")
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    services: ServiceManager,
) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.services = services

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def add_subscription(
    session: AsyncSession,
    user_id: uuid.UUID,
    *,
    max_links_per_month: int = 100,
    custom_alias_enabled: bool = True,
    qr_enabled: bool = True,
    active: bool = True,
) -> Plan:
    plan = Plan(
        id=uuid.uuid4(),
        name="Pro" if custom_alias_enabled else "Free",
        price_monthly=Decimal("9.99"),
        max_links_per_month=max_links_per_month,
        custom_alias_enabled=custom_alias_enabled,
        qr_enabled=qr_enabled,
    )
    session.add(plan)
    session.add(Subscription(id=uuid.uuid4(), user_id=user_id, plan_id=plan.id, active=active))
    await session.commit()
    return plan


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest_asyncio.fixture(scope="function")
async def pro_user(db_session: AsyncSession, user_id: uuid.UUID) -> uuid.UUID:
    await add_subscription(db_session, user_id)
    return user_id


def auth(user: uuid.UUID) -> dict[str, str]:
    return {"X-User-Id": str(user)}

"""Shared pytest fixtures for API, database and service tests."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("BASE_URL", "https://sho.rt")
os.environ.setdefault("JWT_SECRET", "test-secret")

import random
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from shortly.config import Settings, get_settings
from shortly.database import Base, get_db
from shortly.dependencies import get_short_id_generator
from shortly.identifiers import ShortIdGenerator
from shortly.main import app
from shortly.models import Link, User
from shortly.security import create_access_token

settings = get_settings()


@pytest.fixture
def test_settings() -> Settings:
    return settings


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest_asyncio.fixture(scope="function")
async def make_client(
    db_session: AsyncSession, rng: random.Random
) -> AsyncGenerator[Callable[..., AsyncClient], None]:
    """Build clients bound to the test database, one per inbound host."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    def override_generator() -> ShortIdGenerator:
        return ShortIdGenerator(length=settings.SHORT_ID_LENGTH, rng=rng)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_short_id_generator] = override_generator

    clients: list[AsyncClient] = []

    def factory(host: str = "sho.rt") -> AsyncClient:
        client = AsyncClient(transport=ASGITransport(app=app), base_url=f"http://{host}")
        clients.append(client)
        return client

    yield factory

    for client in clients:
        await client.aclose()
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def client(make_client: Callable[..., AsyncClient]) -> AsyncClient:
    return make_client()


@pytest.fixture
def create_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    async def factory(
        email: str,
        is_premium: bool = False,
        custom_domain_prefix: Optional[str] = None,
    ) -> User:
        user = User(email=email, is_premium=is_premium, custom_domain_prefix=custom_domain_prefix)
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return factory


@pytest.fixture
def create_link(db_session: AsyncSession) -> Callable[..., Awaitable[Link]]:
    async def factory(short_id: str, original_url: str = "https://example.com", **fields) -> Link:
        link = Link(short_id=short_id, original_url=original_url, **fields)
        db_session.add(link)
        await db_session.commit()
        await db_session.refresh(link)
        return link

    return factory


@pytest.fixture
def auth_headers() -> Callable[[User], dict[str, str]]:
    def factory(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id, settings)}"}

    return factory

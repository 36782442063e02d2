"""Database configuration and session management for Shortly.

This module provides SQLAlchemy async engine setup, session management,
and database lifecycle operations. PostgreSQL (asyncpg) is the production
backend; any SQLAlchemy async dialect can be plugged in via ``DATABASE_URL``.

Flow Diagram - Database Operations
=================================
::
    ┌─────────────┐
    │  Application│
    │  Request    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ get_db()     │
    │ dependency  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Yield async  │
    │ session     │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Auto-close   │
    │ (finally)    │
    └─────────────┘

How to Use
===========
**Step 1 - Initialize on startup**::
    await init_db()  # Creates tables

**Step 2 - Use in FastAPI endpoints**::
    @router.get("/links")
    async def list_links(db: AsyncSession = Depends(get_db)):
        ...

**Step 3 - Cleanup on shutdown**::
    await close_db()

Key Behaviours
===============
- Async sessions are closed after each request.
- Connection pooling options apply only to server databases; SQLite uses
  SQLAlchemy's default pool.
- Tables are created on application startup.

Classes:
    Base:  SQLAlchemy declarative base for all models.

Functions:
    build_engine():  Creates an async engine for a database URL.
    get_db():  FastAPI dependency for database sessions.
    init_db():  Creates all tables on startup.
    close_db():  Disposes the engine on shutdown.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from shortly.config import get_settings

__all__ = ["Base", "build_engine", "get_db", "init_db", "close_db"]

settings = get_settings()


def build_engine(database_url: str, **overrides) -> AsyncEngine:
    options: dict = {"echo": False, "pool_pre_ping": True}
    if not database_url.startswith("sqlite"):
        options["pool_size"] = settings.DATABASE_POOL_SIZE
        options["max_overflow"] = settings.DATABASE_MAX_OVERFLOW
    options.update(overrides)
    return create_async_engine(database_url, **options)


engine = build_engine(settings.DATABASE_URL)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db() -> None:
    # Register mapped classes on Base.metadata before create_all.
    import shortly.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()

"""Database engine and session management for the short link service.

This module provides the SQLAlchemy async engine setup and session factory,
wrapped in an explicitly constructed ``Database`` handle. The process entry
point owns its lifecycle; nothing here is created at import time.

Flow Diagram — Database Operations
=================================
::
    ┌─────────────┐
    │ Entry point │
    │ (lifespan)  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Database(   │
    │  url)       │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ init()      │
    │ create_all  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ session()   │
    │ per request │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ close()     │
    │ dispose     │
    └─────────────┘

How to Use
===========
**Step 1 — Build from settings on startup**::
    database = Database.from_settings(settings)
    await database.init()  # Creates tables

**Step 2 — Open a session per request**::
    async with database.session() as session:
        store = LinkStore(session)

**Step 3 — Cleanup on shutdown**::
    await database.close()

Key Behaviours
===============
- Sessions do not expire attributes on commit.
- Connection pooling is configured for PostgreSQL; SQLite URLs (tests) use
  the driver's default pool.
- Engine is properly disposed on shutdown.

Classes:
    Base:  SQLAlchemy declarative base for all models.
    Database:  Engine + session factory with init()/close().
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from shortlinks.config import Settings

__all__ = ["Base", "Database"]


class Base(DeclarativeBase):
    pass


class Database:
    def __init__(self, url: str, echo: bool = False, **engine_kwargs) -> None:
        self.url = url
        self.engine = create_async_engine(url, echo=echo, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        engine_kwargs = {"pool_pre_ping": True}
        if not settings.DATABASE_URL.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=settings.DB_POOL_SIZE,
                max_overflow=settings.DB_MAX_OVERFLOW,
            )
        return cls(
            settings.DATABASE_URL,
            echo=(settings.APP_ENV == "development"),
            **engine_kwargs,
        )

    def session(self) -> AsyncSession:
        return self._session_factory()

    async def init(self) -> None:
        # Models must be registered on Base.metadata before create_all.
        import shortlinks.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def close(self) -> None:
        await self.engine.dispose()

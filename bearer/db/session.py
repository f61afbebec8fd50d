"""
Database Session Management - Async SQLAlchemy engine and session factory.

Engines are built from an explicit Settings instance; the host application
owns their lifetime.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from bearer.config import Settings
from bearer.db.models import Base


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine for the configured database."""
    options: dict[str, Any] = {"echo": settings.log_level.upper() == "DEBUG"}

    # SQLite (tests, local runs) uses a static pool without size options
    if not settings.database_url.startswith("sqlite"):
        options.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout,
            pool_recycle=settings.database_pool_recycle,
        )

    return create_async_engine(settings.database_url, **options)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory that keeps instances usable after commit."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """
    Get an async database session.

    Usage:
        async with session_scope(factory) as session:
            manager = BearerManager(session, settings)
            await manager.for_owner(user).issue("sk", "CI key")
    """
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables directly (tests and local tooling; production uses alembic)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_schema(engine: AsyncEngine) -> None:
    """Drop all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

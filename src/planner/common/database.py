"""Async SQLAlchemy database configuration and session management.

Provides async engine, session factory, and dependency injection for FastAPI.
Uses asyncpg for PostgreSQL with connection pooling.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from planner.common.config import Settings, get_settings
from planner.common.exceptions import PlannerError

# Global engine instance
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_engine(settings: Settings | None = None) -> AsyncEngine:
    """Create async SQLAlchemy engine with connection pooling.

    Args:
        settings: Application settings. Uses global settings if not provided.

    Returns:
        Configured async engine instance.
    """
    if settings is None:
        settings = get_settings()

    db_settings = settings.database

    engine_kwargs: dict[str, Any] = {"echo": db_settings.echo}

    if settings.environment == "development" or not db_settings.is_postgres:
        # NullPool doesn't accept pool configuration arguments
        engine_kwargs["poolclass"] = NullPool
    else:
        engine_kwargs["pool_size"] = db_settings.pool_size
        engine_kwargs["max_overflow"] = db_settings.max_overflow
        engine_kwargs["pool_timeout"] = db_settings.pool_timeout
        engine_kwargs["pool_recycle"] = db_settings.pool_recycle
        engine_kwargs["pool_pre_ping"] = True

    if db_settings.is_postgres:
        engine_kwargs["connect_args"] = {
            "server_settings": {"application_name": "planner"},
            "command_timeout": 60,
        }

    return create_async_engine(db_settings.async_url, **engine_kwargs)


def create_session_factory(
    engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    """Create async session factory for database operations."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_database(settings: Settings | None = None) -> None:
    """Initialize database engine and session factory.

    Should be called during application startup.
    """
    global _engine, _session_factory

    if _engine is not None:
        return

    _engine = create_engine(settings)
    _session_factory = create_session_factory(_engine)


async def close_database() -> None:
    """Close database engine and cleanup connections."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None


def get_engine() -> AsyncEngine:
    """Get the global database engine.

    Raises:
        RuntimeError: If database not initialized.
    """
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the global session factory.

    Raises:
        RuntimeError: If database not initialized.
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database session injection.

    Yields:
        Database session for the request lifetime.
    """
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def atomic(
    session: AsyncSession,
    error_class: type[Exception] | None = None,
) -> AsyncGenerator[AsyncSession, None]:
    """Run a block of writes as one unit of work.

    Commits when the block exits normally. On any exception the session is
    rolled back, so no write made inside the block is observable afterwards.
    Application errors propagate unchanged; anything else is wrapped in
    ``error_class`` when given.

    Example:
        async with atomic(db, PersistenceError):
            db.add(workspace)
            await db.flush()
    """
    try:
        yield session
        await session.commit()
    except Exception as e:
        await session.rollback()
        if error_class is None or isinstance(e, PlannerError):
            raise
        raise error_class(cause=e) from e


async def check_database_connection() -> bool:
    """Check if database connection is healthy."""
    try:
        engine = get_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False

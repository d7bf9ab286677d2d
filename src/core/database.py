"""Async SQLAlchemy engine and session management."""

import logging
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.core.config import get_settings
from src.models.base import Base

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_engine_from_settings(url: str | None = None) -> AsyncEngine:
    """Create an async engine for the configured database URL.

    Args:
        url: Optional URL override (defaults to settings.database_url).

    Returns:
        AsyncEngine: New engine instance.
    """
    settings = get_settings()
    database_url = url or settings.database_url
    kwargs: dict[str, Any] = {"echo": settings.database_echo}
    if not database_url.startswith("sqlite"):
        kwargs["pool_size"] = settings.database_pool_size
        kwargs["pool_pre_ping"] = True
    return create_async_engine(database_url, **kwargs)


async def init_database(url: str | None = None) -> AsyncEngine:
    """Initialize the global engine and session factory. Call at app startup.

    Creates missing tables when settings.database_create_tables is enabled.

    Returns:
        AsyncEngine: The initialized engine.
    """
    global _engine, _session_factory

    settings = get_settings()
    _engine = create_engine_from_settings(url)
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)

    if settings.database_create_tables:
        async with _engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured")

    return _engine


async def shutdown_database() -> None:
    """Dispose the global engine. Call at app shutdown."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the global session factory.

    Raises:
        RuntimeError: If init_database() has not been called.
    """
    if _session_factory is None:
        raise RuntimeError("Database is not initialized. Call init_database() at startup.")
    return _session_factory


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a session scoped to one request.

    The session is closed on every exit path; any transaction still open
    at that point is rolled back.
    """
    factory = get_session_factory()
    async with factory() as session:
        yield session


async def check_database_connection() -> dict[str, Any]:
    """Check if database connection is healthy.

    Returns:
        dict: Connection status with 'healthy' boolean and optional 'error' message.
    """
    try:
        factory = get_session_factory()
        async with factory() as session:
            await session.execute(text("SELECT 1"))
        return {"healthy": True}
    except Exception as e:
        return {"healthy": False, "error": str(e)}

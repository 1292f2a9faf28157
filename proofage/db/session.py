"""Database session management using SQLModel async."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Awaitable
from contextlib import asynccontextmanager
from typing import TypeVar

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

# Import all models to ensure they are registered with SQLModel metadata
import proofage.models  # noqa: F401
from proofage.config import get_settings
from proofage.errors import StorageTimeoutError

logger = structlog.get_logger()

T = TypeVar("T")

# Lazy initialization - engine created on first use
_engine = None
_async_session_factory = None


def _get_engine():
    """Get or create the async engine."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(
            settings.database.url,
            echo=settings.database.echo,
            future=True,
        )
    return _engine


def _get_session_factory():
    """Get or create the async session factory."""
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = sessionmaker(
            _get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_factory


async def bounded(
    awaitable: Awaitable[T],
    *,
    operation: str,
    timeout: float | None = None,
) -> T:
    """Await a storage operation with a deadline.

    Args:
        awaitable: The storage coroutine
        operation: Name used in logs and error details
        timeout: Seconds; defaults to database.operation_timeout_seconds

    Raises:
        StorageTimeoutError: If the deadline passes
    """
    if timeout is None:
        timeout = get_settings().database.operation_timeout_seconds
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.warning("db.operation.timeout", operation=operation, timeout=timeout)
        raise StorageTimeoutError(details={"operation": operation}) from e


async def init_db() -> None:
    """Create tables.

    Note: In production, use Alembic migrations instead.
    """
    engine = _get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def close_db() -> None:
    """Close database connection."""
    global _engine, _async_session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Get async database session as context manager.

    Commits on success, rolls back on any exception.
    """
    session_factory = _get_session_factory()
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session_dependency() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for getting database session."""
    async with get_async_session() as session:
        yield session

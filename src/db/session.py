"""Async engine and session management."""
from __future__ import annotations

import logging
from typing import AsyncGenerator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
)

from src.core.config import settings
from src.core.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """Return a cached engine bound to ``settings.DATABASE_URI``."""

    global _engine
    if _engine is None:
        _engine = create_async_engine(
            settings.DATABASE_URI,
            echo=settings.DATABASE_ECHO,
            pool_pre_ping=True,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


async def commit_session(session: AsyncSession) -> None:
    """Commit ``session``; a failed commit means the counters were not saved."""

    try:
        await session.commit()
    except SQLAlchemyError as exc:
        logger.error(f"Commit failed: {exc}")
        raise StorageUnavailableError("Usage counters could not be saved") from exc


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a request-scoped session, committing on success."""

    async with get_session_factory()() as session:
        try:
            yield session
            await commit_session(session)
        except Exception:
            await session.rollback()
            raise


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None

"""
Database Layer

Async SQLAlchemy 2.0 setup with a single process-wide engine.

Design:
    - Lazy initialization: engine created on first use, not at import.
    - Once-guard: a lock serializes first use so concurrent callers can
      never build two engines.
    - The engine lives for the whole process and is reused by every
      request; ``dispose_engine`` is only called on application shutdown.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from casenote.core.config import settings
from casenote.models.base import Base

logger = logging.getLogger(__name__)

# Module-level singletons (lazy)
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None
_init_lock = threading.Lock()


def get_engine() -> AsyncEngine:
    """Get or create the async SQLAlchemy engine (singleton)."""
    global _engine  # noqa: PLW0603
    if _engine is not None:
        return _engine

    with _init_lock:
        # Re-check: another caller may have won the race while we waited
        if _engine is None:
            _engine = create_async_engine(
                settings.DATABASE_URL, echo=False, pool_size=5
            )
            logger.info(
                "Database engine created: %s@%s/%s",
                settings.POSTGRES_USER,
                settings.POSTGRES_HOST,
                settings.POSTGRES_DB,
            )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the async session factory (singleton)."""
    global _session_factory  # noqa: PLW0603
    if _session_factory is not None:
        return _session_factory

    engine = get_engine()
    with _init_lock:
        if _session_factory is None:
            # expire_on_commit=False: no implicit I/O when reading attributes after commit
            _session_factory = async_sessionmaker(engine, expire_on_commit=False)
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a request-scoped database session.

    Usage::

        @router.get("/notes")
        async def list_notes(db: AsyncSession = Depends(get_db)):
            ...
    """
    factory = get_session_factory()
    async with factory() as session:
        yield session


async def dispose_engine() -> None:
    """Dispose the engine at application shutdown."""
    global _engine, _session_factory  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database engine disposed")


# Re-export Base for Alembic migrations compatibility
__all__ = ["Base", "get_engine", "get_session_factory", "get_db", "dispose_engine"]

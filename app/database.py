"""
SkillSwap — Async Database Engine & Session Factory

Builds a single async engine from ``DATABASE_URL``.  Production runs on
PostgreSQL through ``asyncpg``; any SQLAlchemy async dialect is accepted
(the test-suite uses ``sqlite+aiosqlite``).

Every storage round-trip is bounded: asyncpg receives a per-command timeout
and the pool waits at most ``DB_POOL_TIMEOUT_SECONDS`` for a connection.
Exceeding either surfaces as a transient failure in the service layer.
"""

from __future__ import annotations

import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import get_settings

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------ #
# Declarative base for all ORM models
# ------------------------------------------------------------------ #

class Base(DeclarativeBase):
    """Shared declarative base.

    Every SQLAlchemy model in the project should inherit from this class::

        from app.database import Base

        class User(Base):
            __tablename__ = "users"
            ...
    """
    pass


# ------------------------------------------------------------------ #
# Engine construction
# ------------------------------------------------------------------ #

def _normalise_url(url: str) -> str:
    # Transparently upgrade a plain ``postgresql://`` scheme so that
    # developers do not need to remember the asyncpg dialect prefix.
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def build_engine(url: str | None = None) -> AsyncEngine:
    """Create an async engine for ``url`` (defaults to ``DATABASE_URL``).

    Pool tuning and the asyncpg command timeout only apply to server
    databases; SQLite engines get the dialect defaults.
    """
    settings = get_settings()
    url = _normalise_url(url or settings.DATABASE_URL)

    kwargs: dict = {"echo": settings.LOG_LEVEL == "DEBUG"}

    if not url.startswith("sqlite"):
        kwargs.update(
            pool_size=10,
            max_overflow=5,
            pool_timeout=settings.DB_POOL_TIMEOUT_SECONDS,
            pool_recycle=1800,
            pool_pre_ping=True,
        )
    if url.startswith("postgresql+asyncpg"):
        kwargs["connect_args"] = {
            "command_timeout": settings.DB_COMMAND_TIMEOUT_SECONDS,
        }

    engine = create_async_engine(url, **kwargs)
    logger.info("Database engine created (%s)", engine.url.get_backend_name())
    return engine


# ------------------------------------------------------------------ #
# Module-level engine & session factory
# ------------------------------------------------------------------ #

engine = build_engine()

async_session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ------------------------------------------------------------------ #
# FastAPI dependency
# ------------------------------------------------------------------ #

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an ``AsyncSession`` and ensure it is closed afterwards.

    The session commits when the request handler returns normally and
    rolls back on any exception.  That commit may run after the response
    has been sent, so routes that write call
    ``app.api.dependencies.commit_changes`` themselves::

        from fastapi import Depends
        from app.database import get_db

        @router.get("/items")
        async def list_items(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

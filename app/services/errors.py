"""
SkillSwap — Core error taxonomy.

Services raise these exceptions and never touch a transport concept; the
HTTP layer maps each ``kind`` to a status code in ``app.main``.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

logger = structlog.get_logger("skillswap.errors")


class SkillSwapError(Exception):
    """Base class for every failure a core operation can report."""

    kind: str = "internal"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.kind)
        self.message = message or self.kind


class ValidationError(SkillSwapError):
    """Malformed or missing input."""

    kind = "validation_error"


class NotFoundError(SkillSwapError):
    """Entity absent, or access deliberately hidden as absence."""

    kind = "not_found"


class ForbiddenError(SkillSwapError):
    """Entity exists but the actor lacks rights on it."""

    kind = "forbidden"


class ConflictError(SkillSwapError):
    """Duplicate request or duplicate email."""

    kind = "conflict"


class InvalidStateError(SkillSwapError):
    """State-machine transition attempted from the wrong state."""

    kind = "invalid_state"


class AuthenticationError(SkillSwapError):
    """Missing, expired or invalid credentials."""

    kind = "unauthenticated"


class TransientError(SkillSwapError):
    """Storage or network hiccup; safe to retry."""

    kind = "transient"


class InternalError(SkillSwapError):
    """Unexpected failure."""

    kind = "internal"


@asynccontextmanager
async def storage_errors(operation: str) -> AsyncIterator[None]:
    """Translate driver-level connectivity failures into ``TransientError``.

    Usage::

        async with storage_errors("send_request"):
            result = await session.execute(stmt)
    """
    try:
        yield
    except (OperationalError, InterfaceError, PoolTimeoutError, asyncio.TimeoutError) as exc:
        logger.warning("storage_transient_failure", operation=operation, error=str(exc))
        raise TransientError(f"Storage unavailable during {operation}; retry later.") from exc

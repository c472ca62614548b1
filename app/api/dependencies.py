"""
SkillSwap — Shared API dependencies

Turns a Bearer token into an ``AuthenticatedIdentity`` and hands out the
service singletons.  Everything below the API layer receives only the
identity, never the token.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.user import User
from app.services.chat_service import ChatService
from app.services.errors import AuthenticationError, ForbiddenError, storage_errors
from app.services.identity_service import IdentityService
from app.services.matching_service import MatchingService
from app.services.request_service import RequestService
from app.utils.security import decode_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


@dataclass(frozen=True)
class AuthenticatedIdentity:
    actor_id: uuid.UUID
    is_admin: bool = False


# ── Service singletons ────────────────────────────────────────────────────────

_identity_service: IdentityService | None = None
_matching_service: MatchingService | None = None
_chat_service: ChatService | None = None
_request_service: RequestService | None = None


def get_identity_service() -> IdentityService:
    global _identity_service
    if _identity_service is None:
        _identity_service = IdentityService()
    return _identity_service


def get_matching_service() -> MatchingService:
    global _matching_service
    if _matching_service is None:
        _matching_service = MatchingService()
    return _matching_service


def get_chat_service() -> ChatService:
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService()
    return _chat_service


def get_request_service() -> RequestService:
    global _request_service
    if _request_service is None:
        _request_service = RequestService(chat_service=get_chat_service())
    return _request_service


# ── Transactions ──────────────────────────────────────────────────────────────

async def commit_changes(db: AsyncSession, operation: str) -> None:
    """Commit inside the route so the response is only built after the
    writes are durable.  A failed commit surfaces as ``TransientError``."""
    async with storage_errors(operation):
        await db.commit()


# ── Identity ──────────────────────────────────────────────────────────────────

async def resolve_token(db: AsyncSession, token: str | None) -> User:
    """Return the user a token belongs to or raise ``AuthenticationError``."""
    if not token:
        raise AuthenticationError("Authentication required")
    user_id = decode_access_token(token)
    user = await db.get(User, user_id)
    if user is None:
        raise AuthenticationError("User not found")
    return user


async def get_current_user(
    token: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    return await resolve_token(db, token)


async def get_identity(user: User = Depends(get_current_user)) -> AuthenticatedIdentity:
    return AuthenticatedIdentity(actor_id=user.id, is_admin=user.is_admin)


async def require_admin(
    identity: AuthenticatedIdentity = Depends(get_identity),
) -> AuthenticatedIdentity:
    if not identity.is_admin:
        raise ForbiddenError("Admin access required")
    return identity

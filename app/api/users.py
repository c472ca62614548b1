"""
SkillSwap — Users API

Browse listing and profile editing for the signed-in user.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import (
    AuthenticatedIdentity,
    commit_changes,
    get_identity,
    get_identity_service,
    get_matching_service,
)
from app.database import get_db
from app.models.user import User
from app.schemas.user import ProfileUpdate, UserPublic
from app.services.identity_service import IdentityService
from app.services.matching_service import MatchingService

logger = structlog.get_logger("skillswap.api.users")

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# GET — All other users
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "",
    response_model=list[UserPublic],
    summary="List every other user",
)
async def list_users(
    identity: AuthenticatedIdentity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    matching_service: MatchingService = Depends(get_matching_service),
) -> list[User]:
    return await matching_service.list_others(db, identity.actor_id)


# ──────────────────────────────────────────────────────────────────────────────
# PUT /profile — Update own profile
# ──────────────────────────────────────────────────────────────────────────────

@router.put(
    "/profile",
    response_model=UserPublic,
    summary="Update the current user's profile",
)
async def update_profile(
    payload: ProfileUpdate,
    identity: AuthenticatedIdentity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    identity_service: IdentityService = Depends(get_identity_service),
) -> User:
    """Only fields present in the request body (non-None) are applied."""
    user = await identity_service.update_profile(
        db, identity.actor_id, payload.model_dump(exclude_unset=True)
    )
    await commit_changes(db, "update_profile")
    return user

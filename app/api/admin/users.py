"""
SkillSwap — Admin Users API

Account listing, verification and removal.  Removal cascades to every
request and chat that references the user.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import (
    AuthenticatedIdentity,
    commit_changes,
    get_identity_service,
    require_admin,
)
from app.database import get_db
from app.models.user import User
from app.schemas.user import UserPublic
from app.services.identity_service import IdentityService

logger = structlog.get_logger("skillswap.api.admin.users")

router = APIRouter()


@router.get(
    "",
    response_model=list[UserPublic],
    summary="List all users (newest first)",
)
async def list_all_users(
    admin: AuthenticatedIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    identity_service: IdentityService = Depends(get_identity_service),
) -> list[User]:
    return await identity_service.list_users(db)


@router.put(
    "/{user_id}/verify",
    response_model=UserPublic,
    summary="Mark a user as verified",
)
async def verify_user(
    user_id: uuid.UUID,
    admin: AuthenticatedIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    identity_service: IdentityService = Depends(get_identity_service),
) -> User:
    logger.info("admin_verify_user", admin_id=str(admin.actor_id), user_id=str(user_id))
    user = await identity_service.verify_user(db, user_id)
    await commit_changes(db, "verify_user")
    return user


@router.delete(
    "/{user_id}",
    summary="Delete a user and everything that references them",
)
async def delete_user(
    user_id: uuid.UUID,
    admin: AuthenticatedIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    identity_service: IdentityService = Depends(get_identity_service),
) -> dict:
    logger.info("admin_delete_user", admin_id=str(admin.actor_id), user_id=str(user_id))
    counts = await identity_service.delete_user(db, user_id)
    await commit_changes(db, "delete_user")
    return {"message": "User deleted successfully", **counts}

"""
SkillSwap — Auth API

Registration, login and the current-user lookup.  This is the thin auth
collaborator in front of the core: it issues the bearer tokens that
``get_identity`` later turns into an ``AuthenticatedIdentity``.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import commit_changes, get_current_user, get_identity_service
from app.database import get_db
from app.models.user import User
from app.schemas.user import AuthResponse, UserLogin, UserPublic, UserRegister
from app.services.identity_service import IdentityService
from app.utils.security import create_access_token

logger = structlog.get_logger("skillswap.api.auth")

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# POST /register — Create an account
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def register(
    payload: UserRegister,
    db: AsyncSession = Depends(get_db),
    identity_service: IdentityService = Depends(get_identity_service),
) -> AuthResponse:
    """Create the account and return a token so the client is signed in."""
    user = await identity_service.register(db, **payload.model_dump())
    await commit_changes(db, "register")
    return AuthResponse(
        message="User registered successfully",
        token=create_access_token(user.id),
        user=UserPublic.model_validate(user),
    )


# ──────────────────────────────────────────────────────────────────────────────
# POST /login — Exchange credentials for a token
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Log in with email and password",
)
async def login(
    payload: UserLogin,
    db: AsyncSession = Depends(get_db),
    identity_service: IdentityService = Depends(get_identity_service),
) -> AuthResponse:
    user = await identity_service.authenticate(db, payload.email, payload.password)
    logger.info("login_complete", user_id=str(user.id))
    return AuthResponse(
        message="Login successful",
        token=create_access_token(user.id),
        user=UserPublic.model_validate(user),
    )


# ──────────────────────────────────────────────────────────────────────────────
# GET /me — Current user
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/me", response_model=UserPublic, summary="Get the current user")
async def me(user: User = Depends(get_current_user)) -> User:
    return user

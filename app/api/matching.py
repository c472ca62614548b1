"""
SkillSwap — Matching API

Surfaces users whose skills reciprocally intersect the caller's.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import (
    AuthenticatedIdentity,
    get_identity,
    get_identity_service,
    get_matching_service,
)
from app.database import get_db
from app.schemas.user import MatchResponse, UserPublic
from app.services.identity_service import IdentityService
from app.services.matching_service import MatchingService, explain_match

logger = structlog.get_logger("skillswap.api.matching")

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# GET /matches — Skill matches for the caller
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/matches",
    response_model=list[MatchResponse],
    summary="List skill matches for the current user",
)
async def get_matches(
    identity: AuthenticatedIdentity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    matching_service: MatchingService = Depends(get_matching_service),
    identity_service: IdentityService = Depends(get_identity_service),
) -> list[MatchResponse]:
    """Users who offer a skill the caller wants or want a skill the caller
    offers.  Unranked, in directory order.  Each entry lists the overlapping
    skills in both directions."""
    matches = await matching_service.get_matches(db, identity.actor_id)
    requester = await identity_service.find_user(db, identity.actor_id)

    items: list[MatchResponse] = []
    for candidate in matches:
        why = explain_match(requester, candidate)
        items.append(MatchResponse(
            user=UserPublic.model_validate(candidate),
            can_teach_you=why.can_teach_you,
            wants_from_you=why.wants_from_you,
        ))
    return items

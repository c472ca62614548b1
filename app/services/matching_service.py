"""
SkillSwap — Skill Match Engine

For a requesting user R, a candidate U is a match when either side can
teach the other something:

  U.offered_skills ∩ R.desired_skills ≠ ∅   (U can teach R)
  U.desired_skills ∩ R.offered_skills ≠ ∅   (R can teach U)

Skills compare as exact strings: no case folding, no trimming, no fuzzy
matching.  Results are not ranked; they come back in directory order
(oldest account first).  The requester is never part of its own result.

On PostgreSQL the intersection is pushed down with the JSONB ``?|``
operator so only candidate rows leave the database; the same predicate is
always re-applied in Python, which is also the whole filter on other
backends.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

import structlog
from sqlalchemy import cast, or_, select
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.types import String

from app.models.user import User
from app.services.errors import NotFoundError, storage_errors

logger = structlog.get_logger("skillswap.matching_service")


@dataclass(frozen=True)
class MatchExplanation:
    """Why two users matched, from the candidate's point of view."""

    can_teach_you: list[str]
    wants_from_you: list[str]

    @property
    def is_match(self) -> bool:
        return bool(self.can_teach_you or self.wants_from_you)


def explain_match(requester: User, candidate: User) -> MatchExplanation:
    """Return the overlapping skills, keeping the candidate's list order."""
    wanted = set(requester.desired_skills or [])
    offered = set(requester.offered_skills or [])
    return MatchExplanation(
        can_teach_you=[s for s in candidate.offered_skills or [] if s in wanted],
        wants_from_you=[s for s in candidate.desired_skills or [] if s in offered],
    )


def is_match(requester: User, candidate: User) -> bool:
    if candidate.id == requester.id:
        return False
    return explain_match(requester, candidate).is_match


class MatchingService:
    """Read-only queries over the user directory."""

    async def _load_requester(self, db_session: AsyncSession, actor_id: uuid.UUID) -> User:
        async with storage_errors("load_requester"):
            requester = await db_session.get(User, actor_id)
        if requester is None:
            raise NotFoundError(f"User {actor_id} not found.")
        return requester

    async def get_matches(
        self, db_session: AsyncSession, actor_id: uuid.UUID
    ) -> list[User]:
        """Return every other user whose skills reciprocally intersect the actor's."""
        log = logger.bind(actor_id=str(actor_id))
        requester = await self._load_requester(db_session, actor_id)

        stmt = (
            select(User)
            .where(User.id != actor_id)
            .order_by(User.created_at.asc(), User.id.asc())
        )

        if db_session.bind is not None and db_session.bind.dialect.name == "postgresql":
            clauses = []
            if requester.desired_skills:
                clauses.append(
                    cast(User.offered_skills, JSONB).has_any(
                        cast(list(requester.desired_skills), ARRAY(String))
                    )
                )
            if requester.offered_skills:
                clauses.append(
                    cast(User.desired_skills, JSONB).has_any(
                        cast(list(requester.offered_skills), ARRAY(String))
                    )
                )
            if not clauses:
                log.info("get_matches_complete", count=0)
                return []
            stmt = stmt.where(or_(*clauses))

        async with storage_errors("get_matches"):
            result = await db_session.execute(stmt)
            candidates = result.scalars().all()

        matches = [u for u in candidates if is_match(requester, u)]
        log.info("get_matches_complete", count=len(matches))
        return matches

    async def list_others(
        self, db_session: AsyncSession, actor_id: uuid.UUID
    ) -> list[User]:
        """Browse listing: every user except the actor, in directory order."""
        await self._load_requester(db_session, actor_id)
        async with storage_errors("list_others"):
            result = await db_session.execute(
                select(User)
                .where(User.id != actor_id)
                .order_by(User.created_at.asc(), User.id.asc())
            )
            return list(result.scalars().all())

"""
SkillSwap — Identity Directory

Owns user records: registration, credential checks, profile edits, admin
verification and admin deletion.  The matching/request/chat core consumes
users through ``find_user`` and never sees the password hash outside this
module.

Admin deletion runs the cascade (requests, chats, messages) and the user
delete inside the caller's transaction so a failure part-way leaves
nothing half-removed.
"""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.chat import Chat, Message
from app.models.request import ConnectionRequest
from app.models.user import User
from app.services.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
    storage_errors,
)
from app.utils.security import get_password_hash, verify_password

logger = structlog.get_logger("skillswap.identity_service")

_PROFILE_FIELDS = ("name", "bio", "offered_skills", "desired_skills")


def normalise_email(email: str) -> str:
    return email.strip().lower()


def _validate_skills(field: str, value: Any) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(s, str) for s in value):
        raise ValidationError(f"{field} must be a list of strings.")
    # Stored exactly as given: order and duplicates are the user's business.
    return list(value)


class IdentityService:
    """User directory backed by the ``users`` table."""

    # ── Lookups ───────────────────────────────────────────────────────────

    async def find_user(self, db_session: AsyncSession, user_id: uuid.UUID) -> User:
        async with storage_errors("find_user"):
            user = await db_session.get(User, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found.")
        return user

    async def find_by_email(self, db_session: AsyncSession, email: str) -> User:
        async with storage_errors("find_by_email"):
            result = await db_session.execute(
                select(User).where(User.email == normalise_email(email))
            )
            user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError(f"No user registered with {email!r}.")
        return user

    async def list_users(self, db_session: AsyncSession) -> list[User]:
        """Every user, newest first (admin listing)."""
        async with storage_errors("list_users"):
            result = await db_session.execute(
                select(User).order_by(User.created_at.desc())
            )
            return list(result.scalars().all())

    # ── Registration & credentials ────────────────────────────────────────

    async def register(
        self,
        db_session: AsyncSession,
        *,
        name: str,
        email: str,
        password: str,
        bio: str = "",
        offered_skills: list[str] | None = None,
        desired_skills: list[str] | None = None,
        is_admin: bool = False,
        verified: bool = False,
    ) -> User:
        """Create a user account.

        Raises ``ValidationError`` when name, email or password is blank and
        ``ConflictError`` when the email (case-insensitive) is taken.
        """
        if not name or not name.strip() or not email or not email.strip() or not password:
            raise ValidationError("Please provide all required fields.")

        email_norm = normalise_email(email)
        log = logger.bind(email=email_norm)
        log.info("register_start")

        async with storage_errors("register"):
            existing = await db_session.execute(
                select(User.id).where(User.email == email_norm)
            )
            if existing.scalar_one_or_none() is not None:
                log.warning("register_duplicate_email")
                raise ConflictError("Email already registered.")

            user = User(
                name=name.strip(),
                email=email_norm,
                password_hash=get_password_hash(password),
                bio=bio or "",
                offered_skills=_validate_skills("offered_skills", offered_skills or []),
                desired_skills=_validate_skills("desired_skills", desired_skills or []),
                is_admin=is_admin,
                verified=verified,
            )
            try:
                async with db_session.begin_nested():
                    db_session.add(user)
            except IntegrityError as exc:
                log.warning("register_duplicate_email_race")
                raise ConflictError("Email already registered.") from exc

        log.info("register_complete", user_id=str(user.id))
        return user

    async def authenticate(
        self, db_session: AsyncSession, email: str, password: str
    ) -> User:
        if not email or not password:
            raise ValidationError("Please provide email and password.")
        try:
            user = await self.find_by_email(db_session, email)
        except NotFoundError:
            raise AuthenticationError("Invalid credentials") from None
        if not verify_password(password, user.password_hash):
            logger.info("authenticate_bad_password", user_id=str(user.id))
            raise AuthenticationError("Invalid credentials")
        return user

    # ── Profile ───────────────────────────────────────────────────────────

    async def update_profile(
        self, db_session: AsyncSession, user_id: uuid.UUID, changes: dict[str, Any]
    ) -> User:
        """Apply the supplied profile fields; keys outside the profile are ignored."""
        user = await self.find_user(db_session, user_id)

        applied: list[str] = []
        for field in _PROFILE_FIELDS:
            if field not in changes or changes[field] is None:
                continue
            value = changes[field]
            if field in ("offered_skills", "desired_skills"):
                value = _validate_skills(field, value)
            elif field == "name":
                if not value.strip():
                    raise ValidationError("Name cannot be empty.")
                value = value.strip()
            setattr(user, field, value)
            applied.append(field)

        async with storage_errors("update_profile"):
            await db_session.flush()
        logger.info("update_profile_complete", user_id=str(user_id), updated_fields=applied)
        return user

    # ── Admin ─────────────────────────────────────────────────────────────

    async def verify_user(self, db_session: AsyncSession, user_id: uuid.UUID) -> User:
        user = await self.find_user(db_session, user_id)
        user.verified = True
        async with storage_errors("verify_user"):
            await db_session.flush()
        logger.info("verify_user_complete", user_id=str(user_id))
        return user

    async def delete_user(self, db_session: AsyncSession, user_id: uuid.UUID) -> dict:
        """Delete a user together with every request and chat referencing them."""
        await self.find_user(db_session, user_id)
        counts = await on_user_deleted(db_session, user_id)
        async with storage_errors("delete_user"):
            await db_session.execute(
                delete(User)
                .where(User.id == user_id)
                .execution_options(synchronize_session=False)
            )
        logger.info("delete_user_complete", user_id=str(user_id), **counts)
        return counts


async def on_user_deleted(db_session: AsyncSession, user_id: uuid.UUID) -> dict:
    """Remove every request and chat (with its messages) referencing ``user_id``.

    Explicit deletes rather than relying on ``ON DELETE CASCADE`` so the
    behaviour does not depend on the backend enforcing foreign keys.
    """
    async with storage_errors("on_user_deleted"):
        chat_ids = select(Chat.id).where(
            or_(Chat.participant_a_id == user_id, Chat.participant_b_id == user_id)
        )
        messages = await db_session.execute(
            delete(Message)
            .where(Message.chat_id.in_(chat_ids))
            .execution_options(synchronize_session=False)
        )
        chats = await db_session.execute(
            delete(Chat)
            .where(or_(Chat.participant_a_id == user_id, Chat.participant_b_id == user_id))
            .execution_options(synchronize_session=False)
        )
        requests = await db_session.execute(
            delete(ConnectionRequest)
            .where(
                or_(
                    ConnectionRequest.from_user_id == user_id,
                    ConnectionRequest.to_user_id == user_id,
                )
            )
            .execution_options(synchronize_session=False)
        )
    # Drop stale ORM copies of the removed rows from the identity map.
    db_session.expunge_all()
    return {
        "requests_deleted": requests.rowcount,
        "chats_deleted": chats.rowcount,
        "messages_deleted": messages.rowcount,
    }

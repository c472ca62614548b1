"""
SkillSwap — Connection Request Workflow

A request moves through a three-state machine::

    pending ──accept──▶ accepted
       │
       └────reject──▶ rejected

Both outcomes are terminal.  Only the recipient (``to``) may respond, and a
response to anything but a pending request fails with ``InvalidStateError``
rather than being silently repeated.

Uniqueness: at most one pending-or-accepted request per *ordered*
(from, to) pair.  The reverse direction is deliberately independent, so
two users can hold a request to each other at the same time.  The rule is
checked up front and backed by the ``uq_request_live_pair`` partial unique
index, which turns a lost race into ``ConflictError``.

Accepting a request opens the pair's chat through ``ChatService.ensure_chat``
(at most one chat per unordered pair).
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.chat import Chat
from app.models.request import LIVE_STATUSES, ConnectionRequest, RequestStatus
from app.models.user import User
from app.services.chat_service import ChatService
from app.services.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
    storage_errors,
)

logger = structlog.get_logger("skillswap.request_service")


class Decision(str, enum.Enum):
    ACCEPT = "accept"
    REJECT = "reject"


class RequestService:
    """Lifecycle of connection requests between users."""

    def __init__(self, chat_service: ChatService | None = None) -> None:
        self.chat_service = chat_service or ChatService()

    # ── Send ──────────────────────────────────────────────────────────────

    async def send(
        self, db_session: AsyncSession, actor_id: uuid.UUID, target_id: uuid.UUID
    ) -> ConnectionRequest:
        """Create a pending request from ``actor_id`` to ``target_id``."""
        log = logger.bind(from_user_id=str(actor_id), to_user_id=str(target_id))
        log.info("send_request_start")

        if actor_id == target_id:
            raise ValidationError("You cannot send a request to yourself.")

        async with storage_errors("send_request"):
            if await db_session.get(User, target_id) is None:
                raise NotFoundError(f"User {target_id} not found.")

            existing = await db_session.execute(
                select(ConnectionRequest.id).where(
                    ConnectionRequest.from_user_id == actor_id,
                    ConnectionRequest.to_user_id == target_id,
                    ConnectionRequest.status.in_(LIVE_STATUSES),
                )
            )
            if existing.first() is not None:
                log.warning("send_request_duplicate")
                raise ConflictError("Request already sent or accepted")

            request = ConnectionRequest(
                from_user_id=actor_id,
                to_user_id=target_id,
                status=RequestStatus.PENDING.value,
            )
            try:
                async with db_session.begin_nested():
                    db_session.add(request)
            except IntegrityError as exc:
                log.warning("send_request_duplicate_race")
                raise ConflictError("Request already sent or accepted") from exc

            await db_session.refresh(request, attribute_names=["from_user", "to_user"])

        log.info("send_request_complete", request_id=str(request.id))
        return request

    # ── Respond ───────────────────────────────────────────────────────────

    async def _load_for_response(
        self, db_session: AsyncSession, request_id: uuid.UUID, actor_id: uuid.UUID
    ) -> ConnectionRequest:
        async with storage_errors("load_request"):
            request = await db_session.get(ConnectionRequest, request_id)
        if request is None:
            raise NotFoundError("Request not found")
        if request.to_user_id != actor_id:
            raise ForbiddenError("Unauthorized")
        if not request.is_pending:
            raise InvalidStateError(
                f"Request is already {request.status}; only pending requests can be answered."
            )
        return request

    async def _transition(
        self,
        db_session: AsyncSession,
        request: ConnectionRequest,
        target: RequestStatus,
    ) -> ConnectionRequest:
        """Move a pending request to ``target`` with a guarded UPDATE.

        The ``status = 'pending'`` predicate makes the transition atomic: if
        another responder got there first no row matches and the caller
        receives ``InvalidStateError``.
        """
        now = datetime.now(timezone.utc)
        async with storage_errors("transition_request"):
            result = await db_session.execute(
                update(ConnectionRequest)
                .where(
                    ConnectionRequest.id == request.id,
                    ConnectionRequest.status == RequestStatus.PENDING.value,
                )
                .values(status=target.value, responded_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InvalidStateError("Request was answered concurrently.")
            await db_session.refresh(request, attribute_names=["status", "responded_at"])
        return request

    async def accept(
        self, db_session: AsyncSession, request_id: uuid.UUID, actor_id: uuid.UUID
    ) -> tuple[ConnectionRequest, Chat]:
        """Accept a pending request and open the pair's chat.

        Returns the updated request and the (possibly pre-existing) chat.
        """
        log = logger.bind(request_id=str(request_id), actor_id=str(actor_id))
        request = await self._load_for_response(db_session, request_id, actor_id)
        request = await self._transition(db_session, request, RequestStatus.ACCEPTED)

        chat, created = await self.chat_service.ensure_chat(
            db_session, request.from_user_id, request.to_user_id
        )
        log.info("accept_request_complete", chat_id=str(chat.id), chat_created=created)
        return request, chat

    async def reject(
        self, db_session: AsyncSession, request_id: uuid.UUID, actor_id: uuid.UUID
    ) -> ConnectionRequest:
        log = logger.bind(request_id=str(request_id), actor_id=str(actor_id))
        request = await self._load_for_response(db_session, request_id, actor_id)
        request = await self._transition(db_session, request, RequestStatus.REJECTED)
        log.info("reject_request_complete")
        return request

    async def respond(
        self,
        db_session: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        decision: Decision | str,
    ) -> ConnectionRequest:
        try:
            decision = Decision(decision)
        except ValueError:
            raise ValidationError(f"Unknown decision {decision!r}.") from None

        if decision is Decision.ACCEPT:
            request, _ = await self.accept(db_session, request_id, actor_id)
            return request
        return await self.reject(db_session, request_id, actor_id)

    # ── Listings ──────────────────────────────────────────────────────────

    async def list_incoming(
        self, db_session: AsyncSession, actor_id: uuid.UUID
    ) -> list[ConnectionRequest]:
        """Requests addressed to the actor, newest first."""
        async with storage_errors("list_incoming"):
            result = await db_session.execute(
                select(ConnectionRequest)
                .where(ConnectionRequest.to_user_id == actor_id)
                .order_by(ConnectionRequest.created_at.desc(), ConnectionRequest.id.desc())
            )
            return list(result.scalars().all())

    async def list_sent(
        self, db_session: AsyncSession, actor_id: uuid.UUID
    ) -> list[ConnectionRequest]:
        """Requests the actor sent, newest first."""
        async with storage_errors("list_sent"):
            result = await db_session.execute(
                select(ConnectionRequest)
                .where(ConnectionRequest.from_user_id == actor_id)
                .order_by(ConnectionRequest.created_at.desc(), ConnectionRequest.id.desc())
            )
            return list(result.scalars().all())

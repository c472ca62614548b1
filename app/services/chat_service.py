"""
SkillSwap — Chat Store

Append-only message log per participant pair.

  - A chat is visible only to its two participants.  For anybody else it
    does not exist: reads and writes raise ``NotFoundError``, never
    ``ForbiddenError``, so chat ids leak nothing.
  - ``append_message`` is the only way chat content changes.  The chat row
    is locked (``SELECT ... FOR UPDATE``) while the next ``seq`` is taken,
    so appends to one chat are serialised and commit in ``seq`` order;
    readers therefore never see a later message without every earlier one.
  - ``ensure_chat`` creates at most one chat per unordered pair.  The
    pre-check covers the common case; a concurrent creator loses on the
    ``pair_key`` unique constraint inside a SAVEPOINT and adopts the
    winner's row.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.chat import Chat, Message, make_pair_key
from app.services.errors import (
    InternalError,
    NotFoundError,
    ValidationError,
    storage_errors,
)

logger = structlog.get_logger("skillswap.chat_service")


def _last_activity(chat: Chat) -> datetime:
    stamp = chat.messages[-1].created_at if chat.messages else chat.created_at
    # Backends without timezone support hand back naive UTC values.
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    return stamp


class ChatService:
    """Reads and appends for two-party chats."""

    # ── Internal helpers ──────────────────────────────────────────────────

    async def _get_visible_chat(
        self,
        db_session: AsyncSession,
        chat_id: uuid.UUID,
        actor_id: uuid.UUID,
    ) -> Chat:
        stmt = (
            select(Chat)
            .where(Chat.id == chat_id)
            .where(or_(Chat.participant_a_id == actor_id, Chat.participant_b_id == actor_id))
            .execution_options(populate_existing=True)
        )

        async with storage_errors("get_chat"):
            result = await db_session.execute(stmt)
            chat = result.scalar_one_or_none()

        if chat is None:
            raise NotFoundError("Chat not found")
        return chat

    async def find_by_pair(
        self, db_session: AsyncSession, user_a_id: uuid.UUID, user_b_id: uuid.UUID
    ) -> Chat | None:
        async with storage_errors("find_chat_by_pair"):
            result = await db_session.execute(
                select(Chat).where(Chat.pair_key == make_pair_key(user_a_id, user_b_id))
            )
            return result.scalar_one_or_none()

    # ── Public API ────────────────────────────────────────────────────────

    async def ensure_chat(
        self, db_session: AsyncSession, user_a_id: uuid.UUID, user_b_id: uuid.UUID
    ) -> tuple[Chat, bool]:
        """Return the pair's chat, creating it if needed.

        Returns
        -------
        tuple[Chat, bool]
            The chat and whether this call created it.
        """
        log = logger.bind(user_a_id=str(user_a_id), user_b_id=str(user_b_id))

        existing = await self.find_by_pair(db_session, user_a_id, user_b_id)
        if existing is not None:
            log.info("ensure_chat_exists", chat_id=str(existing.id))
            return existing, False

        chat = Chat(
            participant_a_id=user_a_id,
            participant_b_id=user_b_id,
            pair_key=make_pair_key(user_a_id, user_b_id),
            messages=[],
        )
        try:
            async with storage_errors("create_chat"):
                async with db_session.begin_nested():
                    db_session.add(chat)
        except IntegrityError:
            log.info("ensure_chat_lost_race")
            winner = await self.find_by_pair(db_session, user_a_id, user_b_id)
            if winner is None:
                raise InternalError("Chat uniqueness violated but no chat found.")
            return winner, False

        log.info("ensure_chat_created", chat_id=str(chat.id))
        return chat, True

    async def get_chat(
        self, db_session: AsyncSession, chat_id: uuid.UUID, actor_id: uuid.UUID
    ) -> Chat:
        """Return the chat with participants and messages in append order."""
        return await self._get_visible_chat(db_session, chat_id, actor_id)

    async def list_for_user(
        self, db_session: AsyncSession, actor_id: uuid.UUID
    ) -> list[Chat]:
        """All of the actor's chats, most recently active first."""
        async with storage_errors("list_chats"):
            result = await db_session.execute(
                select(Chat)
                .where(or_(Chat.participant_a_id == actor_id, Chat.participant_b_id == actor_id))
                .execution_options(populate_existing=True)
            )
            chats = list(result.scalars().all())
        chats.sort(key=_last_activity, reverse=True)
        return chats

    async def append_message(
        self,
        db_session: AsyncSession,
        chat_id: uuid.UUID,
        actor_id: uuid.UUID,
        text: str,
    ) -> Message:
        """Append ``text`` from ``actor_id`` and return the stored message."""
        log = logger.bind(chat_id=str(chat_id), actor_id=str(actor_id))

        chat = await self._get_visible_chat(db_session, chat_id, actor_id)

        if text is None or not text.strip():
            raise ValidationError("Message text cannot be empty.")

        async with storage_errors("append_message"):
            # Row lock held until commit; SQLite ignores FOR UPDATE and
            # serialises writers on its own.
            await db_session.execute(
                select(Chat.id).where(Chat.id == chat.id).with_for_update()
            )
            next_seq = (
                await db_session.execute(
                    select(func.coalesce(func.max(Message.seq), 0)).where(
                        Message.chat_id == chat.id
                    )
                )
            ).scalar_one() + 1

            message = Message(
                chat_id=chat.id,
                sender_id=actor_id,
                seq=next_seq,
                text=text,
            )
            chat.messages.append(message)
            await db_session.flush()
            # Resolve the sender for the caller's response/broadcast.
            await db_session.refresh(message, attribute_names=["sender"])

        log.info("append_message_complete", message_id=str(message.id), seq=next_seq)
        return message

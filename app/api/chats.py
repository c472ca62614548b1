"""
SkillSwap — Chats API

Read chats and append messages.  A chat the caller does not belong to is
reported as 404 whether or not it exists.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import (
    AuthenticatedIdentity,
    commit_changes,
    get_chat_service,
    get_identity,
)
from app.database import get_db
from app.models.chat import Chat, Message
from app.schemas.chat import ChatResponse, MessageCreate, MessageResponse, NewMessageEvent
from app.services.chat_service import ChatService
from app.services.notifier import ChatNotifier, get_notifier

logger = structlog.get_logger("skillswap.api.chats")

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# GET — Caller's chats
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "",
    response_model=list[ChatResponse],
    summary="List the current user's chats",
)
async def list_chats(
    identity: AuthenticatedIdentity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    chat_service: ChatService = Depends(get_chat_service),
) -> list[Chat]:
    return await chat_service.list_for_user(db, identity.actor_id)


# ──────────────────────────────────────────────────────────────────────────────
# GET /{chat_id} — One chat with its messages
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/{chat_id}",
    response_model=ChatResponse,
    summary="Get a chat with all messages",
)
async def get_chat(
    chat_id: uuid.UUID,
    identity: AuthenticatedIdentity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    chat_service: ChatService = Depends(get_chat_service),
) -> Chat:
    return await chat_service.get_chat(db, chat_id, identity.actor_id)


# ──────────────────────────────────────────────────────────────────────────────
# POST /{chat_id}/message — Append a message
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/{chat_id}/message",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message to a chat",
)
async def send_message(
    chat_id: uuid.UUID,
    payload: MessageCreate,
    identity: AuthenticatedIdentity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    chat_service: ChatService = Depends(get_chat_service),
    notifier: ChatNotifier = Depends(get_notifier),
) -> Message:
    """Store the message, then push it to the chat's live subscribers.

    The commit happens before the push so subscribers are never told about
    a message a subsequent fetch could not return.
    """
    message = await chat_service.append_message(db, chat_id, identity.actor_id, payload.text)
    await commit_changes(db, "send_message")

    event = NewMessageEvent(chat_id=chat_id, message=MessageResponse.model_validate(message))
    notifier.publish(chat_id, event.model_dump(mode="json"))
    return message

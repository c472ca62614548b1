"""
SkillSwap — Realtime chat socket

One WebSocket per client session.  The client joins and leaves chat rooms
with JSON frames::

    {"type": "join_chat", "chat_id": "<uuid>"}
    {"type": "leave_chat", "chat_id": "<uuid>"}
    {"type": "ping"}

and receives ``new_message`` events for the rooms it has joined.  Only
participants may join; anybody else gets the same "not found" error as the
HTTP API.  Closing the socket leaves every room.
"""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api.dependencies import get_chat_service, resolve_token
from app.database import async_session_factory
from app.services.chat_service import ChatService
from app.services.errors import AuthenticationError, NotFoundError, SkillSwapError
from app.services.notifier import ChatNotifier, get_notifier

logger = structlog.get_logger("skillswap.api.ws")

router = APIRouter()


class ChatSocketSession:
    """Frame handling for one authenticated socket."""

    def __init__(
        self,
        websocket: Any,
        actor_id: uuid.UUID,
        notifier: ChatNotifier,
        chat_service: ChatService,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self.websocket = websocket
        self.actor_id = actor_id
        self.notifier = notifier
        self.chat_service = chat_service
        self.session_factory = session_factory
        self.rooms: set[str] = set()

    async def send_json(self, data: Any) -> None:
        """Room delivery entry point; the socket itself is not hashable."""
        await self.websocket.send_json(data)

    async def _error(self, detail: str, chat_id: str | None = None) -> None:
        await self.websocket.send_json({"type": "error", "detail": detail, "chat_id": chat_id})

    async def handle(self, frame: Any) -> None:
        if not isinstance(frame, dict):
            await self._error("Malformed frame")
            return

        kind = frame.get("type")
        if kind == "ping":
            await self.websocket.send_json({"type": "pong"})
            return
        if kind not in ("join_chat", "leave_chat"):
            await self._error(f"Unknown frame type {kind!r}")
            return

        try:
            chat_id = uuid.UUID(str(frame.get("chat_id")))
        except ValueError:
            await self._error("chat_id must be a UUID")
            return

        if kind == "leave_chat":
            self.notifier.unsubscribe(chat_id, self)
            self.rooms.discard(str(chat_id))
            await self.websocket.send_json({"type": "left", "chat_id": str(chat_id)})
            return

        try:
            async with self.session_factory() as db:
                await self.chat_service.get_chat(db, chat_id, self.actor_id)
        except NotFoundError:
            await self._error("Chat not found", str(chat_id))
            return
        except SkillSwapError as exc:
            await self._error(exc.message, str(chat_id))
            return

        self.notifier.subscribe(chat_id, self)
        self.rooms.add(str(chat_id))
        await self.websocket.send_json({"type": "joined", "chat_id": str(chat_id)})

    def close(self) -> None:
        self.notifier.unsubscribe_all(self)
        self.rooms.clear()


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket, token: str | None = Query(None)) -> None:
    try:
        async with async_session_factory() as db:
            user = await resolve_token(db, token)
    except AuthenticationError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    log = logger.bind(user_id=str(user.id))
    log.info("socket_connected")

    session = ChatSocketSession(
        websocket,
        user.id,
        get_notifier(),
        get_chat_service(),
        async_session_factory,
    )
    try:
        while True:
            try:
                frame = await websocket.receive_json()
            except ValueError:
                await websocket.send_json({"type": "error", "detail": "Malformed frame"})
                continue
            await session.handle(frame)
    except WebSocketDisconnect:
        pass
    finally:
        session.close()
        log.info("socket_disconnected")

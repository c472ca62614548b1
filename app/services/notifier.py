"""
SkillSwap — Realtime Notifier

Best-effort pub/sub of new chat messages, one room per chat id.

Sessions join and leave rooms explicitly.  ``publish`` never waits for
delivery: it schedules a background task and returns, so the message-append
path is not held up by slow or dead sockets.  There is no acknowledgement
and no replay; a subscriber that errors is logged and dropped from the
room.  Clients must keep polling the chat to converge, the Chat Store being
the only source of truth.

With ``REDIS_URL`` configured, publishes go through Redis pub/sub so every
worker process on the host sees them; each process fans the event out to
its own local subscribers.
"""

from __future__ import annotations

import asyncio
import json
from collections import defaultdict
from typing import Any, Protocol

import structlog

logger = structlog.get_logger("skillswap.notifier")

CHANNEL_PREFIX = "skillswap:chat:"

_SEND_TIMEOUT_SECONDS = 5.0


class Subscriber(Protocol):
    """Anything that can receive a JSON frame (e.g. a ``ChatSocketSession``)."""

    async def send_json(self, data: Any) -> None: ...


class ChatNotifier:
    """In-process room registry and fan-out."""

    def __init__(self, send_timeout: float = _SEND_TIMEOUT_SECONDS) -> None:
        self.send_timeout = send_timeout
        self._rooms: dict[str, set[Subscriber]] = defaultdict(set)
        self._tasks: set[asyncio.Task] = set()
        self._relay: RedisRelay | None = None

    # ── Membership ────────────────────────────────────────────────────────

    def subscribe(self, chat_id: Any, subscriber: Subscriber) -> None:
        self._rooms[str(chat_id)].add(subscriber)
        logger.info("chat_room_joined", chat_id=str(chat_id), members=len(self._rooms[str(chat_id)]))

    def unsubscribe(self, chat_id: Any, subscriber: Subscriber) -> None:
        room = self._rooms.get(str(chat_id))
        if room is None:
            return
        room.discard(subscriber)
        if not room:
            del self._rooms[str(chat_id)]
        logger.info("chat_room_left", chat_id=str(chat_id))

    def unsubscribe_all(self, subscriber: Subscriber) -> list[str]:
        """Remove ``subscriber`` from every room; returns the rooms it left."""
        left = [chat_id for chat_id, room in self._rooms.items() if subscriber in room]
        for chat_id in left:
            self.unsubscribe(chat_id, subscriber)
        return left

    def subscriber_count(self, chat_id: Any) -> int:
        return len(self._rooms.get(str(chat_id), ()))

    # ── Relay ─────────────────────────────────────────────────────────────

    def attach_relay(self, relay: "RedisRelay | None") -> None:
        self._relay = relay

    # ── Publishing ────────────────────────────────────────────────────────

    def publish(self, chat_id: Any, payload: dict) -> None:
        """Schedule delivery of ``payload`` to the chat's room and return."""
        chat_id = str(chat_id)
        if self._relay is not None:
            coro = self._publish_via_relay(chat_id, payload)
        else:
            coro = self.deliver_local(chat_id, payload)
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _publish_via_relay(self, chat_id: str, payload: dict) -> None:
        try:
            await self._relay.publish(chat_id, payload)
        except Exception:
            logger.exception("relay_publish_failed", chat_id=chat_id)
            await self.deliver_local(chat_id, payload)

    async def deliver_local(self, chat_id: str, payload: dict) -> int:
        """Send ``payload`` to every local subscriber; returns successful sends."""
        delivered = 0
        for subscriber in list(self._rooms.get(chat_id, ())):
            try:
                await asyncio.wait_for(subscriber.send_json(payload), timeout=self.send_timeout)
                delivered += 1
            except Exception as exc:
                logger.warning("chat_delivery_failed", chat_id=chat_id, error=repr(exc))
                self.unsubscribe(chat_id, subscriber)
        logger.debug("chat_broadcast", chat_id=chat_id, delivered=delivered)
        return delivered

    async def drain(self) -> None:
        """Wait for all scheduled deliveries (used on shutdown and in tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class RedisRelay:
    """Carries chat events between processes over Redis pub/sub."""

    def __init__(self, redis_client, notifier: ChatNotifier) -> None:
        self.redis = redis_client
        self.notifier = notifier
        self._pubsub = None
        self._task: asyncio.Task | None = None

    async def publish(self, chat_id: str, payload: dict) -> None:
        await self.redis.publish(f"{CHANNEL_PREFIX}{chat_id}", json.dumps(payload, default=str))

    async def start(self) -> None:
        self._pubsub = self.redis.pubsub()
        await self._pubsub.psubscribe(f"{CHANNEL_PREFIX}*")
        self._task = asyncio.get_running_loop().create_task(self._listen())
        logger.info("redis_relay_started")

    async def _listen(self) -> None:
        async for message in self._pubsub.listen():
            if message.get("type") != "pmessage":
                continue
            try:
                channel = message["channel"]
                if isinstance(channel, bytes):
                    channel = channel.decode()
                data = message["data"]
                if isinstance(data, bytes):
                    data = data.decode()
                chat_id = channel.removeprefix(CHANNEL_PREFIX)
                await self.notifier.deliver_local(chat_id, json.loads(data))
            except Exception:
                logger.exception("redis_relay_message_failed")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._pubsub is not None:
            await self._pubsub.punsubscribe()
            await self._pubsub.aclose()
            self._pubsub = None
        logger.info("redis_relay_stopped")


# ── Process-wide singleton ────────────────────────────────────────────────────

_notifier: ChatNotifier | None = None


def get_notifier() -> ChatNotifier:
    global _notifier
    if _notifier is None:
        _notifier = ChatNotifier()
    return _notifier

"""
SkillSwap — Cooperative chat refresh

The realtime channel is best-effort, so an open chat view re-fetches the
chat on a fixed interval.  ``ChatPoller`` owns that timer as an asyncio
task bound to the view: ``stop()`` (or leaving the ``async with`` block)
cancels it and waits for it, so no refresh outlives the view.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable

import structlog

from app.client.api_client import SkillSwapClient
from app.client.unread import UnreadTracker
from app.config import get_settings

logger = structlog.get_logger("skillswap.client.poller")


class ChatPoller:
    """Call ``fetch`` every ``interval`` seconds and hand results to ``on_update``.

    ``interval`` defaults to ``POLL_INTERVAL_SECONDS``.  Fetch failures are
    logged and the next tick proceeds as usual.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[Any]],
        on_update: Callable[[Any], Any] | None = None,
        interval: float | None = None,
    ) -> None:
        if interval is None:
            interval = get_settings().POLL_INTERVAL_SECONDS
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.fetch = fetch
        self.on_update = on_update
        self.interval = interval
        self.ticks = 0
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def __aenter__(self) -> "ChatPoller":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    async def _run(self) -> None:
        while True:
            try:
                result = await self.fetch()
                self.ticks += 1
                if self.on_update is not None:
                    outcome = self.on_update(result)
                    if inspect.isawaitable(outcome):
                        await outcome
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("chat_poll_failed", error=repr(exc))
            await asyncio.sleep(self.interval)


def watch_chat(
    client: SkillSwapClient,
    chat_id: str,
    tracker: UnreadTracker | None = None,
    on_update: Callable[[dict], Any] | None = None,
    interval: float | None = None,
) -> ChatPoller:
    """Poller for an open chat view; every refresh also marks the chat read."""

    async def _handle(chat: dict) -> None:
        if tracker is not None:
            tracker.mark_read(chat)
        if on_update is not None:
            outcome = on_update(chat)
            if inspect.isawaitable(outcome):
                await outcome

    return ChatPoller(lambda: client.get_chat(chat_id), _handle, interval)

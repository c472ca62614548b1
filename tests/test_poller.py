"""Tests for ChatPoller / watch_chat — periodic refresh bound to a view."""
import asyncio

import pytest

from app.client.poller import ChatPoller, watch_chat
from app.client.unread import UnreadTracker
from app.config import get_settings


class FakeClient:
    def __init__(self, chat):
        self.chat = chat
        self.calls = 0

    async def get_chat(self, chat_id):
        self.calls += 1
        return self.chat


class TestChatPoller:

    def test_interval_must_be_positive(self):
        async def fetch():
            return None

        with pytest.raises(ValueError):
            ChatPoller(fetch, interval=0)

    def test_default_interval_from_settings(self, monkeypatch):
        async def fetch():
            return None

        monkeypatch.setenv("POLL_INTERVAL_SECONDS", "7.5")
        get_settings.cache_clear()
        try:
            assert ChatPoller(fetch).interval == 7.5
            assert watch_chat(FakeClient({}), "c1").interval == 7.5
        finally:
            monkeypatch.delenv("POLL_INTERVAL_SECONDS")
            get_settings.cache_clear()

    @pytest.mark.asyncio
    async def test_polls_until_stopped(self):
        seen = []

        async def fetch():
            return len(seen)

        poller = ChatPoller(fetch, seen.append, interval=0.01)
        poller.start()
        await asyncio.sleep(0.08)
        await poller.stop()

        assert not poller.running
        assert poller.ticks >= 2
        count = len(seen)
        await asyncio.sleep(0.05)
        assert len(seen) == count

    @pytest.mark.asyncio
    async def test_errors_do_not_stop_polling(self):
        attempts = []

        async def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise ConnectionError("offline")
            return "ok"

        results = []
        async with ChatPoller(flaky, results.append, interval=0.01) as poller:
            await asyncio.sleep(0.06)
            assert poller.running
        assert len(attempts) >= 2
        assert "ok" in results

    @pytest.mark.asyncio
    async def test_async_on_update_awaited(self):
        handled = []

        async def fetch():
            return 1

        async def on_update(value):
            handled.append(value)

        async with ChatPoller(fetch, on_update, interval=0.01):
            await asyncio.sleep(0.03)
        assert handled

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        async def fetch():
            return None

        await ChatPoller(fetch).stop()


class TestWatchChat:

    @pytest.mark.asyncio
    async def test_open_view_marks_chat_read(self):
        chat = {"id": "c1", "messages": [{"id": "m1"}]}
        client = FakeClient(chat)
        tracker = UnreadTracker()
        updates = []

        async with watch_chat(client, "c1", tracker, updates.append, interval=0.01):
            await asyncio.sleep(0.03)

        assert client.calls >= 1
        assert updates[0] is chat
        assert not tracker.is_unread(chat)

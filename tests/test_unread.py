"""Tests for the client-side UnreadTracker."""
import json

import pytest

from app.client.unread import UnreadTracker, last_message_id


def _chat(chat_id, *message_ids):
    return {"id": chat_id, "messages": [{"id": mid, "text": "x"} for mid in message_ids]}


class TestUnreadTracker:

    def test_empty_chat_is_never_unread(self):
        tracker = UnreadTracker()
        assert last_message_id(_chat("c1")) is None
        assert not tracker.is_unread(_chat("c1"))

    def test_unseen_message_marks_unread(self):
        tracker = UnreadTracker()
        assert tracker.is_unread(_chat("c1", "m1"))

    def test_mark_read_then_new_message(self):
        """M1 seen, M2 arrives: unread until marked again."""
        tracker = UnreadTracker()
        tracker.mark_read(_chat("c1", "m1"))
        assert not tracker.is_unread(_chat("c1", "m1"))
        assert tracker.is_unread(_chat("c1", "m1", "m2"))
        tracker.mark_read(_chat("c1", "m1", "m2"))
        assert not tracker.is_unread(_chat("c1", "m1", "m2"))

    def test_unread_count_is_per_chat(self):
        tracker = UnreadTracker()
        tracker.mark_read(_chat("c2", "m9"))
        chats = [_chat("c1", "m1", "m2"), _chat("c2", "m9"), _chat("c3"), _chat("c4", "m5")]
        assert tracker.unread_count(chats) == 2

    def test_mark_read_ignores_empty_chat(self):
        tracker = UnreadTracker()
        tracker.mark_read(_chat("c1"))
        assert tracker.last_seen == {}

    def test_forget(self):
        tracker = UnreadTracker()
        tracker.mark_read(_chat("c1", "m1"))
        tracker.forget("c1")
        assert tracker.is_unread(_chat("c1", "m1"))


class TestPersistence:

    def test_markers_survive_reload(self, tmp_path):
        path = tmp_path / "state" / "unread.json"
        tracker = UnreadTracker(path)
        tracker.mark_read(_chat("c1", "m1"))
        assert json.loads(path.read_text()) == {"c1": "m1"}

        restored = UnreadTracker(path)
        restored.load()
        assert not restored.is_unread(_chat("c1", "m1"))

    def test_missing_state_file(self, tmp_path):
        tracker = UnreadTracker(tmp_path / "absent.json")
        tracker.load()
        assert tracker.last_seen == {}

    @pytest.mark.parametrize("content", ["{not json", "[1, 2]"])
    def test_unusable_state_file_resets(self, tmp_path, content):
        path = tmp_path / "unread.json"
        path.write_text(content)
        tracker = UnreadTracker(path)
        tracker.load()
        assert tracker.last_seen == {}
        assert tracker.is_unread(_chat("c1", "m1"))

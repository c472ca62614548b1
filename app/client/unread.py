"""
SkillSwap — Client-side unread tracking

A chat is *unread* for a viewer when it has at least one message and its
last message id differs from the id the viewer last marked as seen.

Markers live with the viewing session (optionally in a small JSON state
file, the equivalent of browser local storage).  They are not synced across
devices and the server knows nothing about them: losing the state file
makes every non-empty chat unread again.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, Mapping

import structlog

logger = structlog.get_logger("skillswap.client.unread")


def last_message_id(chat: Mapping[str, Any]) -> str | None:
    """Id of the chat's last message, or ``None`` for an empty chat."""
    messages = chat.get("messages") or []
    if not messages:
        return None
    return str(messages[-1]["id"])


class UnreadTracker:
    """Per-viewer map of chat id -> last-seen message id."""

    def __init__(self, state_path: str | Path | None = None) -> None:
        self.state_path = Path(state_path) if state_path else None
        self.last_seen: dict[str, str] = {}

    # ── Queries ───────────────────────────────────────────────────────────

    def is_unread(self, chat: Mapping[str, Any]) -> bool:
        latest = last_message_id(chat)
        if latest is None:
            return False
        return self.last_seen.get(str(chat["id"])) != latest

    def unread_count(self, chats: Iterable[Mapping[str, Any]]) -> int:
        """Badge count: number of chats with unseen messages."""
        return sum(1 for chat in chats if self.is_unread(chat))

    # ── Mutations ─────────────────────────────────────────────────────────

    def mark_read(self, chat: Mapping[str, Any]) -> None:
        """Record the chat's current last message as seen.  Empty chats are ignored."""
        latest = last_message_id(chat)
        if latest is None:
            return
        self.last_seen[str(chat["id"])] = latest
        if self.state_path is not None:
            self.save()

    def forget(self, chat_id: Any) -> None:
        self.last_seen.pop(str(chat_id), None)

    # ── Local persistence ─────────────────────────────────────────────────

    def load(self) -> None:
        """Read markers from the state file; a missing or corrupt file means no markers."""
        if self.state_path is None or not self.state_path.exists():
            self.last_seen = {}
            return
        try:
            data = json.loads(self.state_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("unread_state_unreadable", path=str(self.state_path), error=str(exc))
            self.last_seen = {}
            return
        self.last_seen = {str(k): str(v) for k, v in data.items()} if isinstance(data, dict) else {}

    def save(self) -> None:
        if self.state_path is None:
            return
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.state_path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(self.last_seen), encoding="utf-8")
        tmp_path.replace(self.state_path)

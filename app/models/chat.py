"""
SkillSwap — Chat and Message models.

A chat belongs to exactly two users.  ``pair_key`` is the canonical
"lower-uuid:higher-uuid" string of the participants and carries the unique
constraint, so at most one chat exists per unordered pair.

Messages are append-only.  ``seq`` is the 1-based append position within a
chat and is the only sort key; ``created_at`` is informational.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.user import _utcnow


def make_pair_key(user_a_id: uuid.UUID, user_b_id: uuid.UUID) -> str:
    """Return the order-independent key for a participant pair."""
    low, high = sorted((str(user_a_id), str(user_b_id)))
    return f"{low}:{high}"


class Chat(Base):
    __tablename__ = "chats"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    participant_a_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    participant_b_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    pair_key: Mapped[str] = mapped_column(
        String, unique=True, nullable=False,
        comment="Sorted participant ids, colon separated",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    # ── Relationships ──────────────────────────────────────────────
    participant_a: Mapped["User"] = relationship(
        "User", foreign_keys=[participant_a_id], lazy="selectin"
    )
    participant_b: Mapped["User"] = relationship(
        "User", foreign_keys=[participant_b_id], lazy="selectin"
    )
    messages: Mapped[list["Message"]] = relationship(
        "Message",
        back_populates="chat",
        order_by="Message.seq",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    @property
    def participant_ids(self) -> tuple[uuid.UUID, uuid.UUID]:
        return (self.participant_a_id, self.participant_b_id)

    @property
    def participants(self) -> list["User"]:
        return [self.participant_a, self.participant_b]

    def has_participant(self, user_id: uuid.UUID) -> bool:
        return user_id in self.participant_ids

    def __repr__(self) -> str:
        return f"<Chat {self.participant_a_id} <-> {self.participant_b_id}>"


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint("chat_id", "seq", name="uq_message_chat_seq"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    chat_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("chats.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    seq: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="1-based append position"
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    # ── Relationships ──────────────────────────────────────────────
    chat: Mapped["Chat"] = relationship("Chat", back_populates="messages")
    sender: Mapped["User"] = relationship(
        "User", foreign_keys=[sender_id], lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Message chat={self.chat_id} seq={self.seq}>"

"""
SkillSwap — ConnectionRequest model.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.user import _utcnow


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# Statuses that block a new request for the same ordered (from, to) pair.
LIVE_STATUSES = (RequestStatus.PENDING.value, RequestStatus.ACCEPTED.value)

_LIVE_PREDICATE = text("status IN ('pending', 'accepted')")


class ConnectionRequest(Base):
    __tablename__ = "connection_requests"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected')",
            name="ck_request_status",
        ),
        Index(
            "uq_request_live_pair",
            "from_user_id",
            "to_user_id",
            unique=True,
            postgresql_where=_LIVE_PREDICATE,
            sqlite_where=_LIVE_PREDICATE,
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    from_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    to_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String,
        default=RequestStatus.PENDING.value,
        server_default=RequestStatus.PENDING.value,
        nullable=False,
        comment="pending / accepted / rejected",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )
    responded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # ── Relationships ──────────────────────────────────────────────
    from_user: Mapped["User"] = relationship(
        "User", foreign_keys=[from_user_id], lazy="selectin"
    )
    to_user: Mapped["User"] = relationship(
        "User", foreign_keys=[to_user_id], lazy="selectin"
    )

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING.value

    def __repr__(self) -> str:
        return (
            f"<ConnectionRequest {self.from_user_id} -> {self.to_user_id} "
            f"status={self.status!r}>"
        )

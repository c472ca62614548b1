"""
SkillSwap — User model.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, DateTime, String, Text, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Ordered list of free-text skills.  JSONB on PostgreSQL, plain JSON elsewhere.
SkillList = JSON().with_variant(JSONB(), "postgresql")


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(
        String, unique=True, index=True, nullable=False,
        comment="Stored lower-cased",
    )
    password_hash: Mapped[str] = mapped_column(String, nullable=False)
    bio: Mapped[str] = mapped_column(
        Text, default="", server_default="", nullable=False
    )
    offered_skills: Mapped[list[str]] = mapped_column(
        SkillList, default=list, nullable=False,
        comment="Ordered array of skill strings",
    )
    desired_skills: Mapped[list[str]] = mapped_column(
        SkillList, default=list, nullable=False,
        comment="Ordered array of skill strings",
    )
    is_admin: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    verified: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<User {self.email!r} id={self.id}>"

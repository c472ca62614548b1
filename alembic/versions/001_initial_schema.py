"""Initial schema — users, connection requests, chats and messages.

Revision ID: 001_initial
Revises:
Create Date: 2025-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── 1. users ────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String, nullable=False),
        sa.Column(
            "email",
            sa.String,
            nullable=False,
            comment="Stored lower-cased",
        ),
        sa.Column("password_hash", sa.String, nullable=False),
        sa.Column("bio", sa.Text, server_default="", nullable=False),
        sa.Column(
            "offered_skills",
            postgresql.JSONB,
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
            comment="Ordered array of skill strings",
        ),
        sa.Column(
            "desired_skills",
            postgresql.JSONB,
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
            comment="Ordered array of skill strings",
        ),
        sa.Column("is_admin", sa.Boolean, server_default="false", nullable=False),
        sa.Column("verified", sa.Boolean, server_default="false", nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    # GIN indexes serve the ?| overlap test used by the match query.
    op.create_index(
        "ix_users_offered_skills_gin",
        "users",
        ["offered_skills"],
        postgresql_using="gin",
    )
    op.create_index(
        "ix_users_desired_skills_gin",
        "users",
        ["desired_skills"],
        postgresql_using="gin",
    )

    # ── 2. connection_requests ──────────────────────────────────────
    op.create_table(
        "connection_requests",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "from_user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "to_user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.String,
            server_default="pending",
            nullable=False,
            comment="pending / accepted / rejected",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected')",
            name="ck_request_status",
        ),
    )
    op.create_index(
        "ix_connection_requests_from_user_id", "connection_requests", ["from_user_id"]
    )
    op.create_index(
        "ix_connection_requests_to_user_id", "connection_requests", ["to_user_id"]
    )
    # At most one pending-or-accepted request per ordered (from, to) pair.
    op.create_index(
        "uq_request_live_pair",
        "connection_requests",
        ["from_user_id", "to_user_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'accepted')"),
    )

    # ── 3. chats ────────────────────────────────────────────────────
    op.create_table(
        "chats",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "participant_a_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "participant_b_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "pair_key",
            sa.String,
            unique=True,
            nullable=False,
            comment="Sorted participant ids, colon separated",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_chats_participant_a_id", "chats", ["participant_a_id"])
    op.create_index("ix_chats_participant_b_id", "chats", ["participant_b_id"])

    # ── 4. messages ─────────────────────────────────────────────────
    op.create_table(
        "messages",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "chat_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("chats.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "sender_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "seq",
            sa.Integer,
            nullable=False,
            comment="1-based append position",
        ),
        sa.Column("text", sa.Text, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("chat_id", "seq", name="uq_message_chat_seq"),
    )
    op.create_index("ix_messages_chat_id", "messages", ["chat_id"])


def downgrade() -> None:
    # Drop in reverse order (children / dependents first).
    op.drop_index("ix_messages_chat_id", table_name="messages")
    op.drop_table("messages")

    op.drop_index("ix_chats_participant_b_id", table_name="chats")
    op.drop_index("ix_chats_participant_a_id", table_name="chats")
    op.drop_table("chats")

    op.drop_index("uq_request_live_pair", table_name="connection_requests")
    op.drop_index("ix_connection_requests_to_user_id", table_name="connection_requests")
    op.drop_index("ix_connection_requests_from_user_id", table_name="connection_requests")
    op.drop_table("connection_requests")

    op.drop_index("ix_users_desired_skills_gin", table_name="users")
    op.drop_index("ix_users_offered_skills_gin", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

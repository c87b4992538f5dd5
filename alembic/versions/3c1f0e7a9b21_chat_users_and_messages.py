"""chat users and messages

Revision ID: 3c1f0e7a9b21
Revises:
Create Date: 2026-10-18 09:12:44.318204

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "3c1f0e7a9b21"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    _ = op.create_table(
        "chat_users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("display_name", sa.String(length=128), nullable=False),
        sa.Column("role", sa.String(length=64), nullable=False),
        sa.Column("avatar", sa.Text(), nullable=True),
        sa.Column("is_online", sa.Boolean(), nullable=False),
        sa.Column("last_seen", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
    )

    _ = op.create_table(
        "chat_messages",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=True),
        sa.Column("is_ai", sa.Boolean(), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("is_typing", sa.Boolean(), nullable=False),
        sa.Column("chat_scope", sa.String(length=16), nullable=False),
        sa.Column("private_chat_user_id", sa.String(length=36), nullable=True),
        sa.Column(
            "attachments",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(["user_id"], ["chat_users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["private_chat_user_id"], ["chat_users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_chat_messages_scope_ts", "chat_messages", ["chat_scope", "timestamp"])
    op.create_index("ix_chat_messages_typing_user", "chat_messages", ["is_typing", "user_id"])


def downgrade() -> None:
    op.drop_index("ix_chat_messages_typing_user", table_name="chat_messages")
    op.drop_index("ix_chat_messages_scope_ts", table_name="chat_messages")
    op.drop_table("chat_messages")
    op.drop_table("chat_users")

# pyright: reportMissingImports=false
# pyright: reportDeprecated=false
# pyright: reportUnknownVariableType=false
from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from teamchat.db.base import Base
from teamchat.domain.models import utcnow_naive


def _uuid_str() -> str:
    return str(uuid4())


_JSONList = JSON().with_variant(JSONB(), "postgresql")


class ChatUser(Base):
    __tablename__: str = "chat_users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(128), nullable=False)
    role: Mapped[str] = mapped_column(String(64), nullable=False)
    avatar: Mapped[str | None] = mapped_column(Text(), nullable=True)
    is_online: Mapped[bool] = mapped_column(Boolean(), default=False, nullable=False)
    last_seen: Mapped[datetime | None] = mapped_column(
        DateTime(), default=utcnow_naive, nullable=True
    )


class ChatMessage(Base):
    __tablename__: str = "chat_messages"
    __table_args__: tuple[object, ...] = (
        Index("ix_chat_messages_scope_ts", "chat_scope", "timestamp"),
        Index("ix_chat_messages_typing_user", "is_typing", "user_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    content: Mapped[str] = mapped_column(Text(), nullable=False, default="")
    user_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("chat_users.id", ondelete="CASCADE"),
        nullable=True,
    )
    is_ai: Mapped[bool] = mapped_column(Boolean(), default=False, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(), default=utcnow_naive, nullable=False
    )
    is_typing: Mapped[bool] = mapped_column(Boolean(), default=False, nullable=False)
    chat_scope: Mapped[str] = mapped_column(String(16), default="general", nullable=False)
    private_chat_user_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("chat_users.id", ondelete="CASCADE"),
        nullable=True,
    )
    attachments: Mapped[list[dict[str, str]] | None] = mapped_column(_JSONList, nullable=True)

    author: Mapped[ChatUser | None] = relationship(
        "ChatUser", foreign_keys=[user_id], lazy="joined"
    )

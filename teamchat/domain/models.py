from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class CamelModel(BaseModel):
    """Snake_case attributes in Python, camelCase keys on the wire."""

    model_config: ClassVar[ConfigDict] = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_wire(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)


class ChatScope(StrEnum):
    GENERAL = "general"
    PRIVATE = "private"


class Attachment(CamelModel):
    url: str = Field(min_length=1)
    mime_type: str = Field(min_length=1)
    original_name: str = Field(min_length=1)


class User(CamelModel):
    id: str
    username: str
    display_name: str
    role: str
    avatar: str | None = None
    is_online: bool = False
    last_seen: datetime | None = None


class NewUser(CamelModel):
    username: str = Field(min_length=1, max_length=64)
    display_name: str = Field(min_length=1, max_length=128)
    role: str = Field(min_length=1, max_length=64)
    avatar: str | None = None


class Message(CamelModel):
    id: str
    content: str
    author_user_id: str | None = None
    is_ai: bool = Field(default=False, alias="isAI")
    timestamp: datetime
    is_typing: bool = False
    chat_scope: ChatScope = ChatScope.GENERAL
    private_counterpart_user_id: str | None = None
    attachments: list[Attachment] = Field(default_factory=list)


class MessageWithAuthor(Message):
    author: User | None = None


class NewMessage(CamelModel):
    content: str = ""
    author_user_id: str | None = None
    is_ai: bool = Field(default=False, alias="isAI")
    is_typing: bool = False
    chat_scope: ChatScope = ChatScope.GENERAL
    private_counterpart_user_id: str | None = None
    attachments: list[Attachment] = Field(default_factory=list)


def with_author(message: Message, author: User | None) -> MessageWithAuthor:
    return MessageWithAuthor(**message.model_dump(), author=author)


def is_visible_in(
    message: Message, *, scope: ChatScope, counterpart_user_id: str | None
) -> bool:
    if message.is_typing:
        return False
    if scope == ChatScope.PRIVATE:
        return (
            counterpart_user_id is not None
            and message.chat_scope == ChatScope.PRIVATE
            and message.private_counterpart_user_id == counterpart_user_id
        )
    return message.chat_scope == ChatScope.GENERAL

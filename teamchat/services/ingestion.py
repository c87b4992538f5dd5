from __future__ import annotations

import asyncio
import logging

from pydantic import Field

from teamchat.ai.turns import AITurnGenerator
from teamchat.core.errors import NotFoundError, ValidationError
from teamchat.domain.models import (
    Attachment,
    CamelModel,
    ChatScope,
    Message,
    MessageWithAuthor,
    NewMessage,
    User,
    with_author,
)
from teamchat.services.background import DetachedTasks
from teamchat.storage.base import ChatStorage
from teamchat.ws.broadcaster import Broadcaster
from teamchat.ws.connection import ClientConnection
from teamchat.ws.events import ServerEvent, message_created, typing_changed


logger = logging.getLogger(__name__)


class SubmitMessage(CamelModel):
    content: str = Field(default="", max_length=20_000)
    author_user_id: str | None = Field(default=None, max_length=64)
    is_ai: bool = Field(default=False, alias="isAI")
    chat_scope: ChatScope = ChatScope.GENERAL
    private_counterpart_user_id: str | None = Field(default=None, max_length=64)
    ai_active: bool = True
    attachments: list[Attachment] = Field(default_factory=list, max_length=10)


def is_ai_eligible(message: Message, *, ai_active: bool) -> bool:
    if message.is_ai:
        return False
    if message.chat_scope == ChatScope.PRIVATE:
        return True
    return ai_active


class MessageIngestion:
    def __init__(
        self,
        *,
        storage: ChatStorage,
        broadcaster: Broadcaster,
        turns: AITurnGenerator,
        tasks: DetachedTasks,
        default_limit: int = 50,
        max_limit: int = 200,
    ) -> None:
        self._storage: ChatStorage = storage
        self._broadcaster: Broadcaster = broadcaster
        self._turns: AITurnGenerator = turns
        self._tasks: DetachedTasks = tasks
        self.default_limit: int = default_limit
        self.max_limit: int = max_limit

    async def _resolve_user(self, user_id: str, *, field: str) -> User:
        user = await asyncio.to_thread(self._storage.get_user, user_id)
        if user is None:
            raise NotFoundError(f"{field} {user_id!r} does not exist", error_code="USER_NOT_FOUND")
        return user

    async def _validate(self, request: SubmitMessage) -> tuple[NewMessage, User | None]:
        if request.content.strip() == "" and not request.attachments:
            raise ValidationError("message needs content or attachments", error_code="EMPTY_MESSAGE")

        if request.is_ai and request.author_user_id is not None:
            raise ValidationError("AI messages cannot have an author", error_code="AI_WITH_AUTHOR")

        counterpart_id: str | None = None
        if request.chat_scope == ChatScope.PRIVATE:
            if not request.private_counterpart_user_id:
                raise ValidationError(
                    "private messages require privateCounterpartUserId",
                    error_code="MISSING_COUNTERPART",
                )
            _ = await self._resolve_user(
                request.private_counterpart_user_id, field="privateCounterpartUserId"
            )
            counterpart_id = request.private_counterpart_user_id

        author: User | None = None
        if request.author_user_id is not None:
            author = await self._resolve_user(request.author_user_id, field="authorUserId")

        new_message = NewMessage(
            content=request.content,
            author_user_id=request.author_user_id,
            is_ai=request.is_ai,
            is_typing=False,
            chat_scope=request.chat_scope,
            private_counterpart_user_id=counterpart_id,
            attachments=request.attachments,
        )
        return new_message, author

    def _broadcast(self, event: ServerEvent) -> None:
        try:
            _ = self._broadcaster.broadcast_all(event)
        except Exception:
            logger.exception("broadcast failed: type=%s", event.type)

    async def submit(self, request: SubmitMessage) -> MessageWithAuthor:
        new_message, author = await self._validate(request)

        message = await asyncio.to_thread(self._storage.create_message, new_message)
        enriched = with_author(message, author)

        # The submitter's own client receives the canonical record here too.
        self._broadcast(message_created(enriched))

        if is_ai_eligible(message, ai_active=request.ai_active):
            _ = self._tasks.spawn(self._turns.run(message), name=f"ai-turn-{message.id}")
            logger.info(
                "ai turn scheduled: trigger_id=%s scope=%s", message.id, message.chat_scope.value
            )

        return enriched

    async def set_typing(
        self, connection: ClientConnection, user_id: str, is_typing: bool
    ) -> None:
        _ = await asyncio.to_thread(self._storage.replace_typing, user_id, is_typing)
        user = await asyncio.to_thread(self._storage.get_user, user_id)
        try:
            _ = self._broadcaster.broadcast_except(
                connection, typing_changed(user_id=user_id, is_typing=is_typing, user=user)
            )
        except Exception:
            logger.exception("typing broadcast failed: user_id=%s", user_id)

    async def list_messages(
        self,
        *,
        limit: int | None = None,
        scope: ChatScope = ChatScope.GENERAL,
        counterpart_user_id: str | None = None,
    ) -> list[MessageWithAuthor]:
        effective = self.default_limit if limit is None else max(0, min(limit, self.max_limit))
        return await asyncio.to_thread(
            self._storage.list_messages,
            limit=effective,
            scope=scope,
            counterpart_user_id=counterpart_user_id,
        )

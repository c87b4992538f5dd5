"""In-process storage for development and tests."""

from __future__ import annotations

import logging
import threading
from uuid import uuid4

from teamchat.core.errors import ConflictError, NotFoundError
from teamchat.domain.models import (
    ChatScope,
    Message,
    MessageWithAuthor,
    NewMessage,
    NewUser,
    User,
    is_visible_in,
    utcnow_naive,
    with_author,
)


logger = logging.getLogger(__name__)


class MemoryChatStorage:
    backend_name: str = "memory"

    def __init__(self) -> None:
        # Port calls arrive from worker threads via asyncio.to_thread.
        self._lock = threading.Lock()
        self._users: dict[str, User] = {}
        self._messages: dict[str, Message] = {}

    def ping(self) -> None:
        return None

    def get_user(self, user_id: str) -> User | None:
        with self._lock:
            return self._users.get(user_id)

    def get_user_by_username(self, username: str) -> User | None:
        with self._lock:
            for user in self._users.values():
                if user.username == username:
                    return user
            return None

    def create_user(self, new_user: NewUser) -> User:
        with self._lock:
            if any(u.username == new_user.username for u in self._users.values()):
                raise ConflictError(
                    f"username {new_user.username!r} is already taken",
                    error_code="USERNAME_TAKEN",
                )
            user = User(
                id=str(uuid4()),
                username=new_user.username,
                display_name=new_user.display_name,
                role=new_user.role,
                avatar=new_user.avatar,
                is_online=False,
                last_seen=utcnow_naive(),
            )
            self._users[user.id] = user
            return user

    def list_users(self) -> list[User]:
        with self._lock:
            return list(self._users.values())

    def set_online(self, user_id: str, is_online: bool) -> None:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                logger.debug("set_online for unknown user_id=%s ignored", user_id)
                return
            self._users[user_id] = user.model_copy(
                update={"is_online": is_online, "last_seen": utcnow_naive()}
            )

    def create_message(self, new_message: NewMessage) -> Message:
        message = Message(
            id=str(uuid4()),
            content=new_message.content,
            author_user_id=new_message.author_user_id,
            is_ai=new_message.is_ai,
            timestamp=utcnow_naive(),
            is_typing=new_message.is_typing,
            chat_scope=new_message.chat_scope,
            private_counterpart_user_id=new_message.private_counterpart_user_id,
            attachments=list(new_message.attachments),
        )
        with self._lock:
            self._messages[message.id] = message
        return message

    def get_message(self, message_id: str) -> Message | None:
        with self._lock:
            return self._messages.get(message_id)

    def update_message_content(self, message_id: str, content: str) -> None:
        with self._lock:
            message = self._messages.get(message_id)
            if message is None:
                raise NotFoundError(f"message {message_id} not found")
            self._messages[message_id] = message.model_copy(update={"content": content})

    def list_messages(
        self,
        *,
        limit: int,
        scope: ChatScope,
        counterpart_user_id: str | None,
    ) -> list[MessageWithAuthor]:
        with self._lock:
            visible = [
                m
                for m in self._messages.values()
                if is_visible_in(m, scope=scope, counterpart_user_id=counterpart_user_id)
            ]
            # Stable sort keeps insertion order for equal timestamps.
            visible.sort(key=lambda m: m.timestamp)
            if limit > 0:
                visible = visible[-limit:]
            else:
                visible = []
            return [
                with_author(
                    m, self._users.get(m.author_user_id) if m.author_user_id else None
                )
                for m in visible
            ]

    def replace_typing(self, user_id: str, is_typing: bool) -> Message | None:
        with self._lock:
            stale = [
                mid
                for mid, m in self._messages.items()
                if m.is_typing and m.author_user_id == user_id
            ]
            for mid in stale:
                del self._messages[mid]

            if not is_typing:
                return None

            placeholder = Message(
                id=str(uuid4()),
                content="",
                author_user_id=user_id,
                is_ai=False,
                timestamp=utcnow_naive(),
                is_typing=True,
                chat_scope=ChatScope.GENERAL,
            )
            self._messages[placeholder.id] = placeholder
            return placeholder

    def delete_typing_messages(self) -> int:
        with self._lock:
            stale = [mid for mid, m in self._messages.items() if m.is_typing]
            for mid in stale:
                del self._messages[mid]
            return len(stale)

    def clear_all(self) -> None:
        with self._lock:
            self._messages.clear()
            self._users.clear()

    def close(self) -> None:
        return None

from __future__ import annotations

from typing import Protocol

from teamchat.domain.models import (
    ChatScope,
    Message,
    MessageWithAuthor,
    NewMessage,
    NewUser,
    User,
)


class ChatStorage(Protocol):
    """Persistence port for users and messages.

    Implementations are synchronous; async callers go through
    ``asyncio.to_thread`` so a slow backend never blocks the event loop.
    Adapter failures surface as ``PersistenceError``; a duplicate username
    surfaces as ``ConflictError``.
    """

    backend_name: str

    def ping(self) -> None: ...

    def get_user(self, user_id: str) -> User | None: ...

    def get_user_by_username(self, username: str) -> User | None: ...

    def create_user(self, new_user: NewUser) -> User: ...

    def list_users(self) -> list[User]: ...

    def set_online(self, user_id: str, is_online: bool) -> None: ...

    def create_message(self, new_message: NewMessage) -> Message: ...

    def get_message(self, message_id: str) -> Message | None: ...

    def update_message_content(self, message_id: str, content: str) -> None: ...

    def list_messages(
        self,
        *,
        limit: int,
        scope: ChatScope,
        counterpart_user_id: str | None,
    ) -> list[MessageWithAuthor]: ...

    def replace_typing(self, user_id: str, is_typing: bool) -> Message | None: ...

    def delete_typing_messages(self) -> int: ...

    def clear_all(self) -> None: ...

    def close(self) -> None: ...

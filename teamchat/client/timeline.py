"""Client-side view of one chat scope.

Reference consumer for the real-time channel: optimistic sends are shown
immediately under a ``temp-`` id and reconciled with the canonical record
whichever arrives first, the HTTP acknowledgment or the ``message_created``
echo. Merges are idempotent by message id.
"""

from __future__ import annotations

from uuid import uuid4

from teamchat.domain.models import (
    Attachment,
    ChatScope,
    MessageWithAuthor,
    is_visible_in,
    utcnow_naive,
)
from teamchat.ws.events import (
    MessageCreated,
    MessageUpdated,
    PresenceChanged,
    ServerEvent,
    TypingChanged,
    parse_server_event,
)


TEMP_ID_PREFIX = "temp-"


class ChatTimeline:
    def __init__(
        self,
        *,
        scope: ChatScope = ChatScope.GENERAL,
        counterpart_user_id: str | None = None,
    ) -> None:
        self.scope: ChatScope = scope
        self.counterpart_user_id: str | None = counterpart_user_id
        self._messages: list[MessageWithAuthor] = []
        self._complete: set[str] = set()
        self.online_user_ids: set[str] = set()
        self.typing_user_ids: set[str] = set()

    @property
    def messages(self) -> list[MessageWithAuthor]:
        return list(self._messages)

    def _index_of(self, message_id: str) -> int | None:
        for i, m in enumerate(self._messages):
            if m.id == message_id:
                return i
        return None

    def is_complete(self, message_id: str) -> bool:
        return message_id in self._complete

    def load(self, history: list[MessageWithAuthor]) -> None:
        """Replace local state with a server snapshot (``GET /messages``)."""
        self._messages = [m for m in history if self._visible(m)]
        self._complete = {m.id for m in self._messages if not m.is_ai}

    def _visible(self, message: MessageWithAuthor) -> bool:
        return is_visible_in(
            message, scope=self.scope, counterpart_user_id=self.counterpart_user_id
        )

    def add_optimistic(
        self,
        content: str,
        *,
        author_user_id: str | None,
        attachments: list[Attachment] | None = None,
    ) -> str:
        temp_id = f"{TEMP_ID_PREFIX}{uuid4().hex}"
        self._messages.append(
            MessageWithAuthor(
                id=temp_id,
                content=content,
                author_user_id=author_user_id,
                is_ai=False,
                timestamp=utcnow_naive(),
                chat_scope=self.scope,
                private_counterpart_user_id=(
                    self.counterpart_user_id if self.scope == ChatScope.PRIVATE else None
                ),
                attachments=list(attachments or []),
            )
        )
        return temp_id

    def confirm(self, temp_id: str, message: MessageWithAuthor) -> None:
        temp_idx = self._index_of(temp_id)
        if self._index_of(message.id) is not None:
            # The broadcast echo won the race.
            if temp_idx is not None:
                del self._messages[temp_idx]
        elif temp_idx is not None:
            self._messages[temp_idx] = message
        elif self._visible(message):
            self._messages.append(message)
        if not message.is_ai:
            self._complete.add(message.id)

    def discard(self, temp_id: str) -> None:
        idx = self._index_of(temp_id)
        if idx is not None:
            del self._messages[idx]

    def apply(self, event: ServerEvent | object) -> None:
        if not isinstance(event, (MessageCreated, MessageUpdated, PresenceChanged, TypingChanged)):
            event = parse_server_event(event)

        if isinstance(event, MessageCreated):
            message = event.data.message
            if message.is_typing or not self._visible(message):
                return
            if self._index_of(message.id) is None:
                self._messages.append(message)
            if not message.is_ai:
                self._complete.add(message.id)
            return

        if isinstance(event, MessageUpdated):
            idx = self._index_of(event.data.id)
            if idx is None:
                return
            current = self._messages[idx]
            # A late non-final update never overwrites a finalized message.
            if event.data.id in self._complete and not event.data.is_complete:
                return
            self._messages[idx] = current.model_copy(update={"content": event.data.content})
            if event.data.is_complete:
                self._complete.add(event.data.id)
            return

        if isinstance(event, PresenceChanged):
            if event.data.is_online:
                self.online_user_ids.add(event.data.user_id)
            else:
                self.online_user_ids.discard(event.data.user_id)
            return

        if event.data.is_typing:
            self.typing_user_ids.add(event.data.user_id)
        else:
            self.typing_user_ids.discard(event.data.user_id)

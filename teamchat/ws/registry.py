from __future__ import annotations

import asyncio
import logging

from teamchat.metrics.prometheus import set_live_connections
from teamchat.storage.base import ChatStorage
from teamchat.ws.broadcaster import Broadcaster
from teamchat.ws.connection import ClientConnection
from teamchat.ws.events import presence_changed


logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Live client sessions and their authenticated user ids.

    Mutated only from connection lifecycle handlers on the event loop. The
    presence side effects (``set_online`` + ``presence_changed`` broadcast)
    are logged on failure and never raised into the lifecycle handler.
    """

    def __init__(self, storage: ChatStorage) -> None:
        self._storage: ChatStorage = storage
        self._connections: dict[str, ClientConnection] = {}
        self.broadcaster: Broadcaster = Broadcaster(self.open_connections)

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection: object) -> bool:
        return (
            isinstance(connection, ClientConnection)
            and self._connections.get(connection.id) is connection
        )

    def open_connections(self) -> list[ClientConnection]:
        return [c for c in self._connections.values() if c.is_open]

    def online_user_ids(self) -> set[str]:
        return {c.user_id for c in self._connections.values() if c.user_id is not None}

    def register(self, connection: ClientConnection) -> None:
        if connection.id in self._connections:
            raise ValueError(f"connection {connection.id} is already registered")
        connection.user_id = None
        self._connections[connection.id] = connection
        set_live_connections(len(self._connections))
        logger.info("ws connection registered: connection_id=%s", connection.id)

    async def authenticate(self, connection: ClientConnection, user_id: str) -> None:
        if connection.id not in self._connections:
            raise ValueError(f"connection {connection.id} is not registered")

        previous = connection.user_id
        if previous == user_id:
            return
        if previous is not None:
            connection.user_id = None
            await self._announce_presence(previous, is_online=False, connection=connection)

        connection.user_id = user_id
        await self._announce_presence(user_id, is_online=True, connection=connection)

    async def deregister(self, connection: ClientConnection) -> None:
        current = self._connections.get(connection.id)
        if current is not connection:
            return

        user_id = connection.user_id
        _ = self._connections.pop(connection.id, None)
        set_live_connections(len(self._connections))
        logger.info(
            "ws connection deregistered: connection_id=%s user_id=%s",
            connection.id,
            user_id,
        )
        if user_id is not None:
            await self._announce_presence(user_id, is_online=False, connection=connection)

    async def _announce_presence(
        self, user_id: str, *, is_online: bool, connection: ClientConnection
    ) -> None:
        try:
            await asyncio.to_thread(self._storage.set_online, user_id, is_online)
        except Exception:
            logger.exception(
                "presence persist failed: op=set_online user_id=%s is_online=%s connection_id=%s",
                user_id,
                is_online,
                connection.id,
            )
        try:
            _ = self.broadcaster.broadcast_all(
                presence_changed(user_id=user_id, is_online=is_online)
            )
        except Exception:
            logger.exception(
                "presence broadcast failed: user_id=%s is_online=%s connection_id=%s",
                user_id,
                is_online,
                connection.id,
            )

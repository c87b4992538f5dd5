from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from teamchat.ws.connection import ClientConnection
from teamchat.ws.events import ServerEvent, serialize_event


logger = logging.getLogger(__name__)


class Broadcaster:
    """Fans one event out to live connections.

    Delivery is best-effort: the event is serialized once and queued on each
    open connection; closed connections are skipped. The return value is the
    number of connections the event was queued to.
    """

    def __init__(self, connections: Callable[[], Iterable[ClientConnection]]) -> None:
        self._connections: Callable[[], Iterable[ClientConnection]] = connections

    def broadcast_all(self, event: ServerEvent) -> int:
        return self._fan_out(event, skip=None)

    def broadcast_except(self, sender: ClientConnection, event: ServerEvent) -> int:
        return self._fan_out(event, skip=sender)

    def _fan_out(self, event: ServerEvent, *, skip: ClientConnection | None) -> int:
        frame = serialize_event(event)
        delivered = 0
        for conn in list(self._connections()):
            if skip is not None and conn is skip:
                continue
            if not conn.is_open:
                continue
            if conn.enqueue(frame):
                delivered += 1
        logger.debug("broadcast type=%s delivered=%d", event.type, delivered)
        return delivered

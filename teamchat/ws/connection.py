from __future__ import annotations

import asyncio
import logging
from typing import Protocol
from uuid import uuid4

from teamchat.metrics.prometheus import record_dropped_delivery
from teamchat.ws.events import JSONValue


logger = logging.getLogger(__name__)


class FrameSink(Protocol):
    async def send_json(self, data: object) -> None: ...


_CLOSE = object()


class ClientConnection:
    """One live client session.

    Frames go through an unbounded queue drained by a single writer task:
    frames for this connection leave in submission order, and producers never
    wait for a slow socket.
    """

    def __init__(self, sink: FrameSink, *, connection_id: str | None = None) -> None:
        self.id: str = connection_id or uuid4().hex
        self.user_id: str | None = None
        self._sink: FrameSink = sink
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed: bool = False
        self._writer: asyncio.Task[None] | None = None

    def __repr__(self) -> str:
        return f"ClientConnection(id={self.id!r}, user_id={self.user_id!r}, open={self.is_open})"

    @property
    def is_open(self) -> bool:
        return not self._closed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self._writer is None:
            self._writer = asyncio.create_task(self._run_writer(), name=f"ws-writer-{self.id}")

    def enqueue(self, frame: dict[str, JSONValue]) -> bool:
        if self._closed:
            return False
        self._queue.put_nowait(frame)
        return True

    async def _run_writer(self) -> None:
        while True:
            frame = await self._queue.get()
            if frame is _CLOSE:
                return
            try:
                await self._sink.send_json(frame)
            except Exception as e:
                self._closed = True
                dropped = 1 + self._queue.qsize()
                record_dropped_delivery(dropped)
                logger.info(
                    "ws send failed, connection marked closed: connection_id=%s user_id=%s err=%s dropped=%d",
                    self.id,
                    self.user_id,
                    type(e).__name__,
                    dropped,
                )
                return

    async def close(self, *, flush_timeout_s: float = 1.0) -> None:
        """Stop accepting frames, flush what is queued, stop the writer."""
        if self._closed and self._writer is None:
            return
        self._closed = True
        writer = self._writer
        self._writer = None
        if writer is None or writer.done():
            return

        self._queue.put_nowait(_CLOSE)
        try:
            await asyncio.wait_for(asyncio.shield(writer), timeout=flush_timeout_s)
        except asyncio.TimeoutError:
            _ = writer.cancel()
            try:
                await writer
            except asyncio.CancelledError:
                pass

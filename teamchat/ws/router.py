# pyright: reportUnusedFunction=false

from __future__ import annotations

import asyncio
import logging
from typing import cast

from fastapi import APIRouter, WebSocket
from starlette.websockets import WebSocketDisconnect

from teamchat.core.errors import ChatError, ValidationError
from teamchat.services.runtime import ChatRuntime
from teamchat.ws.connection import ClientConnection
from teamchat.ws.events import AuthEvent, TypingEvent, parse_client_event


logger = logging.getLogger(__name__)

_CLOSE_UNSUPPORTED = 1003
_CLOSE_POLICY = 1008


async def chat_ws(websocket: WebSocket) -> None:
    runtime = cast(ChatRuntime, websocket.app.state.chat)

    await websocket.accept()
    conn = ClientConnection(websocket)
    conn.start()
    runtime.registry.register(conn)

    close_code: int | None = None
    try:
        while True:
            try:
                raw_obj = cast(object, await websocket.receive_json())
            except (KeyError, TypeError, ValueError):
                # Binary frames carry no "text"; only JSON text frames are accepted.
                logger.info("ws frame rejected: connection_id=%s err=NOT_JSON_TEXT", conn.id)
                close_code = _CLOSE_UNSUPPORTED
                return

            try:
                event = parse_client_event(raw_obj)
            except ValidationError as e:
                logger.info("ws frame rejected: connection_id=%s err=%s", conn.id, e.error_code)
                close_code = _CLOSE_UNSUPPORTED
                return

            if isinstance(event, AuthEvent):
                user_id = event.data.user_id
                user = await asyncio.to_thread(runtime.storage.get_user, user_id)
                if user is None:
                    logger.info(
                        "ws auth rejected, unknown user: connection_id=%s user_id=%s",
                        conn.id,
                        user_id,
                    )
                    close_code = _CLOSE_POLICY
                    return
                await runtime.registry.authenticate(conn, user_id)
                continue

            if isinstance(event, TypingEvent):
                if conn.user_id is None:
                    continue
                try:
                    await runtime.ingestion.set_typing(conn, conn.user_id, event.data.is_typing)
                except ChatError as e:
                    logger.warning(
                        "typing update failed: connection_id=%s user_id=%s err=%s",
                        conn.id,
                        conn.user_id,
                        e.error_code,
                    )
                continue

    except WebSocketDisconnect:
        return
    finally:
        # Teardown must finish even when the handler itself is being cancelled.
        release = runtime.tasks.spawn(
            _release(runtime, websocket, conn, close_code), name=f"ws-release-{conn.id}"
        )
        await asyncio.shield(release)


async def _release(
    runtime: ChatRuntime,
    websocket: WebSocket,
    conn: ClientConnection,
    close_code: int | None,
) -> None:
    await runtime.registry.deregister(conn)
    await conn.close()
    if close_code is not None:
        try:
            await websocket.close(code=close_code)
        except RuntimeError:
            pass


def create_ws_router(path: str = "/ws") -> APIRouter:
    router = APIRouter()
    router.add_api_websocket_route(path, chat_ws)
    return router

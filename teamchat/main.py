# pyright: reportUnusedFunction=false

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.base import RequestResponseEndpoint
from starlette.middleware.trustedhost import TrustedHostMiddleware

from teamchat.api.v1.router import api_router
from teamchat.core.config import Settings, get_settings
from teamchat.core.errors import ChatError
from teamchat.core.logging import configure_logging, request_id_ctx_var
from teamchat.core.version import get_app_version
from teamchat.services.runtime import ChatRuntime, build_runtime
from teamchat.ws.router import create_ws_router


logger = logging.getLogger(__name__)


def create_app(app_settings: Settings | None = None, *, runtime: ChatRuntime | None = None) -> FastAPI:
    s = app_settings or get_settings()

    configure_logging(s.log_level)

    chat = runtime if runtime is not None else build_runtime(s)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        await chat.startup()
        try:
            yield
        finally:
            await chat.shutdown()

    app_version = get_app_version()
    app = FastAPI(title="teamchat-server", version=app_version, lifespan=lifespan)
    app.state.chat = chat

    if s.trusted_hosts:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=s.trusted_hosts)

    if s.cors_allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=s.cors_allowed_origins,
            allow_credentials=False,
            allow_methods=["*"],
            allow_headers=["*"],
            max_age=600,
        )

    @app.middleware("http")
    async def request_context_and_security_headers(
        request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-Id") or uuid.uuid4().hex
        token = request_id_ctx_var.set(rid)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx_var.reset(token)

        response.headers["X-Request-Id"] = rid
        response.headers["X-Teamchat-Version"] = app_version
        _ = response.headers.setdefault("X-Content-Type-Options", "nosniff")
        _ = response.headers.setdefault("X-Frame-Options", "DENY")
        _ = response.headers.setdefault("Referrer-Policy", "no-referrer")
        return response

    @app.exception_handler(ChatError)
    async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "request failed: method=%s path=%s error_code=%s",
                request.method,
                request.url.path,
                exc.error_code,
                exc_info=(type(exc), exc, exc.__traceback__),
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    app.include_router(api_router, prefix=s.api_v1_prefix)
    app.include_router(create_ws_router(s.ws_path))

    app.mount(
        s.uploads_url_prefix,
        StaticFiles(directory=s.uploads_dir, check_dir=False),
        name="uploads",
    )

    @app.get("/metrics", include_in_schema=False)
    async def prometheus_metrics() -> Response:
        from teamchat.metrics.prometheus import metrics_payload

        payload, content_type = metrics_payload()
        return Response(content=payload, media_type=content_type)

    return app


app = create_app()


__all__ = ["app", "create_app"]

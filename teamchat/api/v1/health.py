from __future__ import annotations

# pyright: reportUnusedFunction=false
# pyright: reportCallInDefaultInitializer=false

import asyncio
import time
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from teamchat.api.v1.deps import get_runtime
from teamchat.services.runtime import ChatRuntime


router = APIRouter(tags=["health"])


class DependencyStatus(BaseModel):
    status: Literal["ok", "error"]
    latency_ms: int | None = None
    detail: str | None = Field(default=None, description="Short diagnostic, never secrets")
    mode: str | None = None


class HealthDependencies(BaseModel):
    storage: DependencyStatus
    ai: DependencyStatus


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"]
    dependencies: HealthDependencies
    connections: int


_DEFAULT_TIMEOUT_S = 0.5


def _safe_exc_detail(exc: BaseException) -> str:
    return type(exc).__name__


async def _check_storage(runtime: ChatRuntime, *, timeout_s: float) -> DependencyStatus:
    start = time.perf_counter()
    mode = runtime.storage.backend_name
    try:
        await asyncio.wait_for(asyncio.to_thread(runtime.storage.ping), timeout=timeout_s)
    except Exception as exc:
        latency_ms = int((time.perf_counter() - start) * 1000)
        return DependencyStatus(
            status="error", latency_ms=latency_ms, mode=mode, detail=_safe_exc_detail(exc)
        )
    latency_ms = int((time.perf_counter() - start) * 1000)
    return DependencyStatus(status="ok", latency_ms=latency_ms, mode=mode)


def _check_ai(runtime: ChatRuntime) -> DependencyStatus:
    labels = runtime.generator.labels
    if labels.provider == "fake":
        return DependencyStatus(status="ok", mode="fake")
    if runtime.settings.openai_api_key_value is None:
        return DependencyStatus(status="error", mode=labels.provider, detail="api_key_missing")
    return DependencyStatus(status="ok", mode=labels.provider, detail=labels.model)


@router.get("/health", response_model=HealthResponse)
async def health(runtime: ChatRuntime = Depends(get_runtime)) -> HealthResponse:
    storage = await _check_storage(runtime, timeout_s=_DEFAULT_TIMEOUT_S)
    ai = _check_ai(runtime)

    dependencies = HealthDependencies(storage=storage, ai=ai)
    overall_ok = all(d.status == "ok" for d in [dependencies.storage, dependencies.ai])
    status: Literal["ok", "degraded"] = "ok" if overall_ok else "degraded"
    return HealthResponse(
        status=status, dependencies=dependencies, connections=len(runtime.registry)
    )

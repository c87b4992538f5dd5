# pyright: reportCallInDefaultInitializer=false

from __future__ import annotations

import asyncio
import logging
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from teamchat.api.v1.deps import get_runtime
from teamchat.services.runtime import ChatRuntime


logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin"])


class ClearedResponse(BaseModel):
    status: Literal["cleared"] = "cleared"


@router.delete("/all-data", response_model=ClearedResponse, operation_id="admin_clear_all")
async def clear_all_data(runtime: ChatRuntime = Depends(get_runtime)) -> ClearedResponse:
    await asyncio.to_thread(runtime.storage.clear_all)
    logger.warning("all chat data cleared: storage=%s", runtime.storage.backend_name)
    return ClearedResponse()

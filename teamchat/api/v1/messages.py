# pyright: reportCallInDefaultInitializer=false

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from teamchat.api.v1.deps import get_runtime
from teamchat.domain.models import ChatScope, MessageWithAuthor
from teamchat.services.ingestion import SubmitMessage
from teamchat.services.runtime import ChatRuntime


router = APIRouter(tags=["messages"])


@router.post(
    "/messages",
    response_model=MessageWithAuthor,
    response_model_by_alias=True,
    operation_id="messages_submit",
)
async def submit_message(
    body: SubmitMessage,
    runtime: ChatRuntime = Depends(get_runtime),
) -> MessageWithAuthor:
    return await runtime.ingestion.submit(body)


@router.get(
    "/messages",
    response_model=list[MessageWithAuthor],
    response_model_by_alias=True,
    operation_id="messages_list",
)
async def list_messages(
    limit: int | None = Query(default=None, ge=1),
    chat_scope: ChatScope = Query(default=ChatScope.GENERAL, alias="chatScope"),
    counterpart_user_id: str | None = Query(default=None, alias="counterpartUserId"),
    runtime: ChatRuntime = Depends(get_runtime),
) -> list[MessageWithAuthor]:
    return await runtime.ingestion.list_messages(
        limit=limit,
        scope=chat_scope,
        counterpart_user_id=counterpart_user_id,
    )

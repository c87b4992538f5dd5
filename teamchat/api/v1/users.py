# pyright: reportCallInDefaultInitializer=false

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, status

from teamchat.api.v1.deps import get_runtime
from teamchat.core.errors import NotFoundError
from teamchat.domain.models import NewUser, User
from teamchat.services.runtime import ChatRuntime


router = APIRouter(prefix="/users", tags=["users"])


@router.post(
    "",
    response_model=User,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
    operation_id="users_create",
)
async def create_user(
    body: NewUser,
    runtime: ChatRuntime = Depends(get_runtime),
) -> User:
    return await asyncio.to_thread(runtime.storage.create_user, body)


@router.get(
    "",
    response_model=list[User],
    response_model_by_alias=True,
    operation_id="users_list",
)
async def list_users(runtime: ChatRuntime = Depends(get_runtime)) -> list[User]:
    return await asyncio.to_thread(runtime.storage.list_users)


@router.get(
    "/{user_id}",
    response_model=User,
    response_model_by_alias=True,
    operation_id="users_get",
)
async def get_user(user_id: str, runtime: ChatRuntime = Depends(get_runtime)) -> User:
    user = await asyncio.to_thread(runtime.storage.get_user, user_id)
    if user is None:
        raise NotFoundError(f"user {user_id!r} not found", error_code="USER_NOT_FOUND")
    return user

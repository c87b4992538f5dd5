from __future__ import annotations

from typing import cast

from fastapi import Request

from teamchat.services.runtime import ChatRuntime


def get_runtime(request: Request) -> ChatRuntime:
    return cast(ChatRuntime, request.app.state.chat)

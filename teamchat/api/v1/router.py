# pyright: reportMissingImports=false
# pyright: reportUnknownArgumentType=false
# pyright: reportUnknownVariableType=false
from __future__ import annotations

from fastapi import APIRouter

from teamchat.api.v1.admin import router as admin_router
from teamchat.api.v1.health import router as health_router
from teamchat.api.v1.messages import router as messages_router
from teamchat.api.v1.uploads import router as uploads_router
from teamchat.api.v1.users import router as users_router


api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(messages_router)
api_router.include_router(users_router)
api_router.include_router(uploads_router)
api_router.include_router(admin_router)

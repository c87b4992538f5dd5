from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from teamchat.ai.provider import TextGenerator, create_text_generator
from teamchat.ai.turns import AITurnGenerator
from teamchat.core.config import Settings
from teamchat.services.background import DetachedTasks
from teamchat.services.ingestion import MessageIngestion
from teamchat.storage.base import ChatStorage
from teamchat.storage.blobs import LocalBlobStore
from teamchat.storage.factory import create_storage
from teamchat.ws.registry import ConnectionRegistry


logger = logging.getLogger(__name__)


@dataclass
class ChatRuntime:
    """Process-wide collaborators, built once per application instance."""

    settings: Settings
    storage: ChatStorage
    registry: ConnectionRegistry
    generator: TextGenerator
    turns: AITurnGenerator
    tasks: DetachedTasks
    ingestion: MessageIngestion
    blobs: LocalBlobStore

    async def startup(self) -> None:
        # Typing placeholders never survive a restart.
        removed = await asyncio.to_thread(self.storage.delete_typing_messages)
        if removed:
            logger.info("stale typing placeholders removed: count=%d", removed)

    async def shutdown(self, *, drain_timeout_s: float = 5.0) -> None:
        await self.tasks.drain(timeout_s=drain_timeout_s)
        await asyncio.to_thread(self.storage.close)


def build_runtime(
    settings: Settings,
    *,
    storage: ChatStorage | None = None,
    generator: TextGenerator | None = None,
) -> ChatRuntime:
    storage = storage if storage is not None else create_storage(settings)
    generator = generator if generator is not None else create_text_generator(settings)

    registry = ConnectionRegistry(storage)
    tasks = DetachedTasks()
    turns = AITurnGenerator(
        storage=storage,
        broadcaster=registry.broadcaster,
        generator=generator,
        apology_text=settings.ai_apology_text,
        timeout_s=settings.ai_turn_timeout_seconds,
    )
    ingestion = MessageIngestion(
        storage=storage,
        broadcaster=registry.broadcaster,
        turns=turns,
        tasks=tasks,
        default_limit=settings.messages_default_limit,
        max_limit=settings.messages_max_limit,
    )
    blobs = LocalBlobStore(
        root=settings.uploads_dir,
        url_prefix=settings.uploads_url_prefix,
        max_bytes=settings.uploads_max_bytes,
        allowed_extensions=settings.uploads_allowed_extensions,
    )
    logger.info(
        "chat runtime ready: storage=%s ai_provider=%s ai_model=%s",
        storage.backend_name,
        generator.labels.provider,
        generator.labels.model,
    )
    return ChatRuntime(
        settings=settings,
        storage=storage,
        registry=registry,
        generator=generator,
        turns=turns,
        tasks=tasks,
        ingestion=ingestion,
        blobs=blobs,
    )

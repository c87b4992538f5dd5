from __future__ import annotations

import logging

from teamchat.core.config import Settings
from teamchat.storage.base import ChatStorage


logger = logging.getLogger(__name__)


def create_storage(settings: Settings) -> ChatStorage:
    """Resolve the storage backend once at startup."""
    if settings.storage_backend == "database":
        from teamchat.storage.database import SqlAlchemyChatStorage

        storage = SqlAlchemyChatStorage.from_uri(
            settings.sqlalchemy_database_uri,
            create_schema=settings.database_create_schema,
        )
    else:
        from teamchat.storage.memory import MemoryChatStorage

        storage = MemoryChatStorage()

    logger.info("storage backend selected: %s", storage.backend_name)
    return storage

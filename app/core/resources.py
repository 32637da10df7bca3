"""Application resources with an explicit connect/disconnect lifecycle.

The FastAPI lifespan builds one AppResources, connects it on startup and
disconnects it on shutdown. Route handlers reach it through dependencies in
``app.api.deps``.
"""

from collections.abc import Callable
from dataclasses import dataclass

import structlog

from app.core.config import Settings
from app.db.base import Database
from app.db.redis import RedisConnection
from app.storage.object_storage import ObjectStorageClient

logger = structlog.get_logger(__name__)


@dataclass
class AppResources:
    settings: Settings
    database: Database
    redis: RedisConnection
    storage: ObjectStorageClient

    async def connect(self) -> None:
        await self.database.connect()
        logger.info("db_connected")

        await self.redis.connect()
        logger.info("redis_connected")

        self.storage.connect()

    async def disconnect(self) -> None:
        self.storage.close()
        await self.redis.disconnect()
        await self.database.disconnect()
        logger.info("resources_disconnected")


ResourcesFactory = Callable[[Settings], AppResources]


def build_resources(settings: Settings) -> AppResources:
    """Default factory: real database, Redis and S3 from settings."""
    return AppResources(
        settings=settings,
        database=Database(settings.database_url, echo=settings.debug),
        redis=RedisConnection(settings.redis_url),
        storage=ObjectStorageClient.from_settings(settings),
    )

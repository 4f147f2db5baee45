from __future__ import annotations

import importlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, cast
from urllib.parse import urlparse

import structlog
from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

from smartmarks.config import Config

logger = structlog.get_logger(__name__)

DEFAULT_DATABASE = "smartmarks"

# (attribute, module, class) in start order. Bookmark must start before feed:
# it enables the before-images that owner-scoped delete events rely on.
SERVICE_REGISTRY = (
    ("auth", "smartmarks.core.modules.auth.service", "AuthService"),
    ("session", "smartmarks.core.modules.session.service", "SessionService"),
    ("bookmark", "smartmarks.core.modules.bookmark.service", "BookmarkService"),
    ("feed", "smartmarks.core.modules.feed.service", "ChangeFeedService"),
)


class Service:
    """Base class for services with direct database access."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        self.database = database
        self._core: Core | None = None

    async def on_start(self) -> None:
        """Initialize service on application startup."""

    async def on_stop(self) -> None:
        """Cleanup service on application shutdown."""

    @property
    def core(self) -> Core:
        if self._core is None:
            raise RuntimeError("Core not set for service")
        return self._core

    def set_core(self, core: Core) -> None:
        self._core = core


class Services:
    """Registry of the service singletons, built from SERVICE_REGISTRY."""

    from smartmarks.core.modules.auth.service import AuthService  # noqa: PLC0415
    from smartmarks.core.modules.bookmark.service import BookmarkService  # noqa: PLC0415
    from smartmarks.core.modules.feed.service import ChangeFeedService  # noqa: PLC0415
    from smartmarks.core.modules.session.service import SessionService  # noqa: PLC0415

    auth: AuthService
    session: SessionService
    bookmark: BookmarkService
    feed: ChangeFeedService

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        self._services: list[Service] = []
        for attr_name, module_path, class_name in SERVICE_REGISTRY:
            service_class = cast(type[Service], getattr(importlib.import_module(module_path), class_name))
            setattr(self, attr_name, service_class(database))
            self._services.append(getattr(self, attr_name))

    def set_core(self, core: Core) -> None:
        for service in self._services:
            service.set_core(core)

    async def start_all(self) -> None:
        """Start services in order. If one fails, the ones already started are stopped again."""
        started: list[Service] = []
        try:
            for service in self._services:
                await service.on_start()
                started.append(service)
        except BaseException:
            logger.exception("service_start_failed", started=[type(s).__name__ for s in started])
            for service in reversed(started):
                await service.on_stop()
            raise

    async def stop_all(self) -> None:
        """Stop services in reverse start order."""
        for service in reversed(self._services):
            await service.on_stop()


class Core:
    """Container providing config, database, and all service instances."""

    config: Config
    mongo_client: AsyncMongoClient[dict[str, Any]]
    database: AsyncDatabase[dict[str, Any]]
    services: Services

    def __init__(self, config: Config) -> None:
        self.config = config
        # tz_aware keeps created_at comparable with the timezone-aware values the app creates
        self.mongo_client = AsyncMongoClient(config.database_url, uuidRepresentation="standard", tz_aware=True)
        database_name = urlparse(config.database_url).path.lstrip("/") or DEFAULT_DATABASE
        self.database = self.mongo_client.get_database(database_name)
        self.services = Services(self.database)
        self.services.set_core(self)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Start services for the lifetime of the block; always close the Mongo client."""
        try:
            await self.services.start_all()
            logger.info("core_started", database=self.database.name)
            try:
                yield
            finally:
                await self.services.stop_all()
        finally:
            await self.mongo_client.aclose()

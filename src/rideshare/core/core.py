from __future__ import annotations

import importlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, cast
from urllib.parse import urlparse

import structlog
from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

from rideshare.config import Config
from rideshare.core.modules.chat.hub import RoomHub, create_server

if TYPE_CHECKING:
    from rideshare.core.modules.auth.service import AuthService
    from rideshare.core.modules.chat.service import ChatService
    from rideshare.core.modules.message.service import MessageService
    from rideshare.core.modules.quickmatch.service import QuickMatchService
    from rideshare.core.modules.ride.service import RideService
    from rideshare.core.modules.user.service import UserService

logger = structlog.get_logger(__name__)


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
        """Get the core application context."""
        if self._core is None:
            raise RuntimeError("Core not set for service")
        return self._core

    def set_core(self, core: Core) -> None:
        """Set the core application context."""
        self._core = core


class Services:
    """Service registry that automatically discovers and initializes services."""

    user: UserService
    auth: AuthService
    ride: RideService
    message: MessageService
    quick_match: QuickMatchService
    chat: ChatService

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        """Initialize all services automatically using service configuration."""
        self._services: list[Service] = []
        self._database = database

        # Service configuration: (attribute_name, module_path, class_name)
        # Order matters for initialization - user must be first
        service_configs = [
            ("user", "rideshare.core.modules.user.service", "UserService"),
            ("auth", "rideshare.core.modules.auth.service", "AuthService"),
            ("ride", "rideshare.core.modules.ride.service", "RideService"),
            ("message", "rideshare.core.modules.message.service", "MessageService"),
            ("quick_match", "rideshare.core.modules.quickmatch.service", "QuickMatchService"),
            ("chat", "rideshare.core.modules.chat.service", "ChatService"),
        ]

        for attr_name, module_path, class_name in service_configs:
            module = importlib.import_module(module_path)
            service_class = cast(type[Service], getattr(module, class_name))
            service_instance = service_class(database)
            setattr(self, attr_name, service_instance)
            self._services.append(service_instance)

    def set_core(self, core: Core) -> None:
        """Set core reference for all services."""
        for service in self._services:
            service.set_core(core)

    async def start_all(self) -> None:
        """Start all services that have startup logic."""
        for service in self._services:
            await service.on_start()

    async def stop_all(self) -> None:
        """Stop all services that have cleanup logic."""
        for service in reversed(self._services):
            await service.on_stop()


class Core:
    """Container providing config, database, realtime hub, and all service instances."""

    config: Config
    mongo_client: AsyncMongoClient[dict[str, Any]]
    database: AsyncDatabase[dict[str, Any]]
    hub: RoomHub
    services: Services

    def __init__(self, config: Config) -> None:
        """Initialize core with config, MongoDB, the realtime hub, and auto-register services."""
        self.config = config
        self.mongo_client = AsyncMongoClient(config.database_url, uuidRepresentation="standard", tz_aware=True)
        self.database = self.mongo_client.get_database(urlparse(config.database_url).path[1:])
        self.hub = RoomHub(create_server(config))
        self.services = Services(self.database)
        self.services.set_core(self)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Manage application lifecycle - startup and shutdown."""
        await self.on_start()
        try:
            yield
        finally:
            await self.on_stop()

    async def on_start(self) -> None:
        """Start the hub, then all services."""
        self.hub.start()
        await self.services.start_all()
        logger.info("core_started", database=self.database.name)

    async def on_stop(self) -> None:
        """Stop services, the hub, and close MongoDB connection on shutdown."""
        await self.services.stop_all()
        await self.hub.stop()
        await self.mongo_client.aclose()

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import PyMongoError

from rideshare.app import App
from rideshare.config import Config
from rideshare.errors import UserError
from rideshare.web.error_handlers import general_exception_handler, store_error_handler, user_error_handler
from rideshare.web.openapi import set_custom_openapi
from rideshare.web.realtime import register_realtime_handlers
from rideshare.web.routers import auth_router, profile_router, quick_match_router, trust_router


def create_fastapi_app(app_instance: App, config: Config) -> FastAPI:
    """Create and configure FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        """FastAPI application lifespan management."""
        app.state.app = app_instance
        app.state.config = config
        async with app_instance.lifespan():
            yield

    app = FastAPI(
        title="Campus RideShare API",
        lifespan=lifespan,
        openapi_tags=[],
    )

    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(profile_router, prefix="/api/v1")
    app.include_router(quick_match_router, prefix="/api/v1")
    app.include_router(trust_router, prefix="/api/v1")

    app.add_exception_handler(UserError, user_error_handler)
    app.add_exception_handler(PyMongoError, store_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    set_custom_openapi(app)

    return app


def create_asgi_app(app_instance: App, config: Config) -> socketio.ASGIApp:
    """FastAPI wrapped by the Socket.IO server; /socket.io/ goes to chat, everything else to the API."""
    register_realtime_handlers(app_instance.realtime_server, app_instance)
    return socketio.ASGIApp(app_instance.realtime_server, other_asgi_app=create_fastapi_app(app_instance, config))

"""Process-wide handle on the Socket.IO server.

Rooms, fan-out and cross-process delivery belong to python-socketio; with a
Redis URL configured every worker shares one message queue, so a broadcast
reaches room members connected to any worker. Core creates one RoomHub and
hands it to the services that broadcast.
"""

from typing import Any
from uuid import UUID

import socketio
import structlog
from pydantic import BaseModel, Field

from rideshare.config import Config

logger = structlog.get_logger(__name__)

CLIENT_SESSION_KEY = "client"


class ChatClient(BaseModel):
    """An authenticated socket, as stored in its Socket.IO session."""

    sid: str
    user_id: UUID
    name: str
    rooms: dict[str, str] = Field(default_factory=dict)  # room key -> identity shown to that room


def create_server(config: Config) -> socketio.AsyncServer:
    client_manager = socketio.AsyncRedisManager(config.redis_url) if config.redis_url else None
    return socketio.AsyncServer(
        async_mode="asgi",
        client_manager=client_manager,
        cors_allowed_origins=config.cors_origins or None,  # None keeps same-origin only
        ping_interval=config.ws_ping_interval,
        logger=False,
        engineio_logger=False,
    )


class RoomHub:
    """Room operations on top of socketio.AsyncServer.

    The server exists from construction so it can be mounted, but every room
    operation raises until start() has run.
    """

    def __init__(self, server: socketio.AsyncServer) -> None:
        self._server = server
        self._started = False

    @property
    def server(self) -> socketio.AsyncServer:
        return self._server

    def start(self) -> None:
        self._started = True
        logger.debug("room_hub_started")

    async def stop(self) -> None:
        self._started = False

    def _ensure_started(self) -> None:
        if not self._started:
            raise RuntimeError("Realtime hub used before start()")

    async def join(self, sid: str, room: str) -> None:
        self._ensure_started()
        await self._server.enter_room(sid, room)

    async def leave(self, sid: str, room: str) -> None:
        self._ensure_started()
        await self._server.leave_room(sid, room)

    async def close(self, room: str) -> None:
        """Remove every socket from the room, on every worker."""
        self._ensure_started()
        await self._server.close_room(room)

    def rooms_of(self, sid: str) -> list[str]:
        self._ensure_started()
        return list(self._server.rooms(sid))

    async def emit(self, event: str, data: Any, to: str | list[str], skip_sid: str | None = None) -> None:
        self._ensure_started()
        if isinstance(to, list) and not to:
            return
        await self._server.emit(event, data, to=to, skip_sid=skip_sid)

    async def get_client(self, sid: str) -> ChatClient:
        self._ensure_started()
        session = await self._server.get_session(sid)
        return ChatClient.model_validate(session[CLIENT_SESSION_KEY])

    async def save_client(self, client: ChatClient) -> None:
        self._ensure_started()
        await self._server.save_session(client.sid, {CLIENT_SESSION_KEY: client.model_dump()})

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any
from uuid import UUID

import socketio

from rideshare.config import Config
from rideshare.core.core import Core
from rideshare.core.modules.auth.models import AuthToken
from rideshare.core.modules.chat.hub import ChatClient
from rideshare.core.modules.chat.models import RoomKind
from rideshare.core.modules.quickmatch.models import (
    Destination,
    MeetupPoint,
    NearbySessionView,
    SessionView,
)
from rideshare.core.modules.user.models import User, UserView
from rideshare.utils import now


class App:
    """Facade for all application operations, resolves the caller before delegating to Core."""

    def __init__(self, config: Config) -> None:
        self._core = Core(config)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    # === Identity ===
    async def is_auth_token_valid(self, auth_token: AuthToken) -> bool:
        return await self._core.services.auth.is_auth_token_valid(auth_token)

    async def authenticate(self, auth_token: AuthToken) -> User:
        """Resolve a bearer token to its user, raising AuthenticationError."""
        return await self._core.services.auth.verify(auth_token)

    async def register(self, name: str, email: str, password: str) -> UserView:
        user = await self._core.services.user.create_user(name, email, password)
        return UserView.from_domain(user)

    async def login(self, email: str, password: str) -> AuthToken:
        return await self._core.services.auth.login(email, password)

    async def logout(self, auth_token: AuthToken) -> None:
        await self.authenticate(auth_token)
        await self._core.services.auth.invalidate(auth_token)

    async def get_current_user(self, auth_token: AuthToken) -> UserView:
        return UserView.from_domain(await self.authenticate(auth_token))

    # === Trusted users ===
    async def list_trusted_users(self, auth_token: AuthToken) -> list[UserView]:
        user = await self.authenticate(auth_token)
        return [UserView.from_domain(u) for u in await self._core.services.user.list_trusted(user.id)]

    async def trust_user(self, auth_token: AuthToken, target_id: UUID) -> UserView:
        user = await self.authenticate(auth_token)
        return UserView.from_domain(await self._core.services.user.add_trust(user.id, target_id))

    async def untrust_user(self, auth_token: AuthToken, target_id: UUID) -> None:
        user = await self.authenticate(auth_token)
        await self._core.services.user.remove_trust(user.id, target_id)

    async def is_user_trusted(self, auth_token: AuthToken, target_id: UUID) -> bool:
        user = await self.authenticate(auth_token)
        return await self._core.services.user.is_trusted(user.id, target_id)

    # === Quick Match ===
    async def create_quick_match(
        self,
        auth_token: AuthToken,
        latitude: float | None,
        longitude: float | None,
        destination: Destination | None,
        meetup_point: MeetupPoint | None = None,
        max_participants: int | None = None,
        radius: int | None = None,
    ) -> SessionView:
        """Start a session; the caller's display name is their nickname in it."""
        user = await self.authenticate(auth_token)
        session = await self._core.services.quick_match.create_session(
            user.id, user.name, latitude, longitude, destination, meetup_point, max_participants, radius
        )
        return SessionView.for_member(session, user.id, now())

    async def get_active_quick_match(self, auth_token: AuthToken) -> SessionView | None:
        user = await self.authenticate(auth_token)
        return await self._core.services.quick_match.get_active_session(user.id)

    async def find_nearby_quick_matches(
        self,
        auth_token: AuthToken,
        latitude: float | None,
        longitude: float | None,
        destination_id: str | None = None,
        radius: float | None = None,
    ) -> list[NearbySessionView]:
        user = await self.authenticate(auth_token)
        return await self._core.services.quick_match.find_nearby(user.id, latitude, longitude, destination_id, radius)

    async def get_quick_match(self, auth_token: AuthToken, session_id: UUID) -> SessionView:
        user = await self.authenticate(auth_token)
        return await self._core.services.quick_match.get_session_by_id(user.id, session_id)

    async def join_quick_match(
        self, auth_token: AuthToken, session_id: UUID, latitude: float | None = None, longitude: float | None = None
    ) -> SessionView:
        user = await self.authenticate(auth_token)
        session = await self._core.services.quick_match.join_session(user.id, user.name, session_id, latitude, longitude)
        return SessionView.for_member(session, user.id, now())

    async def leave_quick_match(self, auth_token: AuthToken, session_id: UUID) -> None:
        user = await self.authenticate(auth_token)
        await self._core.services.quick_match.leave_session(user.id, session_id)

    async def close_quick_match(self, auth_token: AuthToken, session_id: UUID) -> bool:
        user = await self.authenticate(auth_token)
        return await self._core.services.quick_match.close_session(user.id, session_id)

    async def cancel_quick_match(self, auth_token: AuthToken, session_id: UUID) -> None:
        user = await self.authenticate(auth_token)
        await self._core.services.quick_match.cancel_session(user.id, session_id)

    # === Realtime chat ===
    @property
    def realtime_server(self) -> socketio.AsyncServer:
        return self._core.hub.server

    async def connect_chat(self, client: ChatClient) -> None:
        await self._core.services.chat.connect(client)

    async def get_chat_client(self, sid: str) -> ChatClient:
        return await self._core.services.chat.get_client(sid)

    async def notify_chat(self, client: ChatClient, event: str, message: str) -> None:
        await self._core.services.chat.notify(client, event, message)

    async def join_chat(self, client: ChatClient, room_id: UUID, kind: RoomKind) -> None:
        await self._core.services.chat.join_room(client, room_id, kind)

    async def leave_chat(self, client: ChatClient, room_id: UUID, kind: RoomKind) -> None:
        await self._core.services.chat.leave_room(client, room_id, kind)

    async def send_chat_message(self, client: ChatClient, room_id: UUID, kind: RoomKind, content: Any) -> None:
        await self._core.services.chat.send_message(client, room_id, kind, content)

    async def disconnect_chat(self, sid: str) -> None:
        await self._core.services.chat.disconnect(sid)

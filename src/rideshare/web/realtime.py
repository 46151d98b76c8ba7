"""Realtime chat over Socket.IO.

The socket authenticates in the handshake; a refused handshake never gets a
session. Room events mirror the REST membership rules.
"""

from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import parse_qs
from uuid import UUID

import socketio
import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import PyMongoError
from socketio.exceptions import ConnectionRefusedError as HandshakeRefusedError

from rideshare.app import App
from rideshare.core.modules.auth.models import AuthToken
from rideshare.core.modules.chat.hub import ChatClient
from rideshare.core.modules.chat.models import POLICIES, RoomKind
from rideshare.errors import AuthenticationError

logger = structlog.get_logger(__name__)


class ChatMessageData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ride_id: UUID | None = Field(None, alias="rideId")
    session_id: UUID | None = Field(None, alias="sessionId")
    content: Any = None


# event name -> (action, room kind)
CLIENT_EVENTS: dict[str, tuple[str, RoomKind]] = {
    "join-ride": ("join", RoomKind.RIDE),
    "leave-ride": ("leave", RoomKind.RIDE),
    "send-message": ("send", RoomKind.RIDE),
    "join-quick-match": ("join", RoomKind.QUICK_MATCH),
    "leave-quick-match": ("leave", RoomKind.QUICK_MATCH),
    "send-qm-message": ("send", RoomKind.QUICK_MATCH),
}


def extract_token(auth: Any, environ: dict[str, Any]) -> AuthToken | None:
    """Token from the handshake auth payload, ?token= or an Authorization: Bearer header."""
    if isinstance(auth, dict) and auth.get("token"):
        return AuthToken(str(auth["token"]))
    query = parse_qs(environ.get("QUERY_STRING", ""))
    if query.get("token"):
        return AuthToken(query["token"][0])
    authorization = environ.get("HTTP_AUTHORIZATION", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return AuthToken(credentials)
    return None


async def authenticate_handshake(app: App, sid: str, environ: dict[str, Any], auth: Any) -> ChatClient:
    """Resolve the handshake to a chat client or refuse the connection."""
    token = extract_token(auth, environ)
    try:
        if token is None:
            raise AuthenticationError("No token provided")
        user = await app.authenticate(token)
    except AuthenticationError as e:
        raise HandshakeRefusedError(str(e)) from e
    return ChatClient(sid=sid, user_id=user.id, name=user.name)


async def dispatch(app: App, client: ChatClient, event: str, data: Any) -> None:
    """Route one client event to the chat service."""
    action, kind = CLIENT_EVENTS[event]
    error_event = POLICIES[kind].error_event

    if action == "send":
        try:
            payload = ChatMessageData.model_validate(data)
        except PydanticValidationError:
            await app.notify_chat(client, error_event, "Invalid message payload")
            return
        room_id = payload.session_id if kind == RoomKind.QUICK_MATCH else payload.ride_id
        if room_id is None:
            await app.notify_chat(client, error_event, "Missing room id")
            return
        await app.send_chat_message(client, room_id, kind, payload.content)
        return

    try:
        room_id = UUID(str(data))
    except ValueError:
        await app.notify_chat(client, error_event, "Invalid room id")
        return

    if action == "join":
        await app.join_chat(client, room_id, kind)
    else:
        await app.leave_chat(client, room_id, kind)


def _event_handler(app: App, event: str) -> Callable[..., Awaitable[None]]:
    async def handler(sid: str, data: Any = None) -> None:
        client = await app.get_chat_client(sid)
        try:
            await dispatch(app, client, event, data)
        except PyMongoError:
            logger.exception("realtime_store_error", sid=sid, event=event)
            await app.notify_chat(client, "error", "Chat is temporarily unavailable")

    return handler


def register_realtime_handlers(server: socketio.AsyncServer, app: App) -> None:
    """Attach the handshake, disconnect and room event handlers to the server."""

    async def connect(sid: str, environ: dict[str, Any], auth: Any = None) -> None:
        client = await authenticate_handshake(app, sid, environ, auth)
        await app.connect_chat(client)
        logger.info("realtime_connected", sid=sid, user_id=client.user_id)

    async def disconnect(sid: str, reason: Any = None) -> None:
        await app.disconnect_chat(sid)
        logger.info("realtime_disconnected", sid=sid, reason=reason)

    server.on("connect", connect)
    server.on("disconnect", disconnect)
    for event in CLIENT_EVENTS:
        server.on(event, _event_handler(app, event))

"""Tests for the Socket.IO handshake and event routing."""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
import socketio
from pymongo.errors import ServerSelectionTimeoutError
from socketio.exceptions import ConnectionRefusedError as HandshakeRefusedError

from rideshare.core.modules.chat.hub import ChatClient
from rideshare.core.modules.chat.models import RoomKind
from rideshare.core.modules.user.models import User
from rideshare.errors import AuthenticationError
from rideshare.web.realtime import (
    CLIENT_EVENTS,
    authenticate_handshake,
    dispatch,
    extract_token,
    register_realtime_handlers,
)


@pytest.fixture
def app():
    return AsyncMock()


@pytest.fixture
def client():
    return ChatClient(sid="sid-1", user_id=uuid4(), name="Asha")


class TestExtractToken:
    """Tests for reading the token from a handshake."""

    def test_auth_payload_first(self):
        """Test that the Socket.IO auth payload wins over query and header."""
        environ = {"QUERY_STRING": "token=from-query", "HTTP_AUTHORIZATION": "Bearer from-header"}
        assert extract_token({"token": "from-auth"}, environ) == "from-auth"

    def test_query_parameter(self):
        """Test that ?token= is accepted."""
        assert extract_token(None, {"QUERY_STRING": "EIO=4&transport=websocket&token=abc"}) == "abc"

    def test_bearer_header(self):
        """Test that an Authorization: Bearer header is accepted."""
        assert extract_token({}, {"HTTP_AUTHORIZATION": "Bearer abc"}) == "abc"

    def test_missing(self):
        """Test that no token yields None."""
        assert extract_token(None, {"HTTP_AUTHORIZATION": "Basic abc"}) is None


class TestHandshake:
    """Tests for authenticating the socket before it is accepted."""

    async def test_valid_token(self, app):
        """Test that the handshake yields a client for the token's user."""
        user = User(name="Asha", email="asha@vitstudent.ac.in", password_hash="x")
        app.authenticate.return_value = user

        client = await authenticate_handshake(app, "sid-1", {}, {"token": "abc"})

        assert client == ChatClient(sid="sid-1", user_id=user.id, name="Asha")
        app.authenticate.assert_awaited_once_with("abc")

    async def test_missing_token_refused(self, app):
        """Test that a handshake without a token is refused with a reason."""
        with pytest.raises(HandshakeRefusedError) as exc_info:
            await authenticate_handshake(app, "sid-1", {}, None)
        assert exc_info.value.error_args["message"] == "No token provided"
        app.authenticate.assert_not_awaited()

    async def test_invalid_token_refused(self, app):
        """Test that an unknown token is refused instead of accepted and closed."""
        app.authenticate.side_effect = AuthenticationError("Invalid or expired token")
        with pytest.raises(HandshakeRefusedError) as exc_info:
            await authenticate_handshake(app, "sid-1", {}, {"token": "stale"})
        assert exc_info.value.error_args["message"] == "Invalid or expired token"


class TestDispatch:
    """Tests for routing client events to the chat service."""

    async def test_join_quick_match(self, app, client):
        """Test that join events pass the parsed room id and kind."""
        session_id = uuid4()
        await dispatch(app, client, "join-quick-match", str(session_id))
        app.join_chat.assert_awaited_once_with(client, session_id, RoomKind.QUICK_MATCH)

    async def test_leave_ride(self, app, client):
        """Test that leave events route to leave_chat."""
        ride_id = uuid4()
        await dispatch(app, client, "leave-ride", str(ride_id))
        app.leave_chat.assert_awaited_once_with(client, ride_id, RoomKind.RIDE)

    async def test_send_quick_match_message(self, app, client):
        """Test that a Quick Match message reads sessionId."""
        session_id = uuid4()
        await dispatch(app, client, "send-qm-message", {"sessionId": str(session_id), "content": "hi"})
        app.send_chat_message.assert_awaited_once_with(client, session_id, RoomKind.QUICK_MATCH, "hi")

    async def test_send_ride_message(self, app, client):
        """Test that a ride message reads rideId."""
        ride_id = uuid4()
        await dispatch(app, client, "send-message", {"rideId": str(ride_id), "content": "hi"})
        app.send_chat_message.assert_awaited_once_with(client, ride_id, RoomKind.RIDE, "hi")

    async def test_invalid_room_id(self, app, client):
        """Test that a malformed room id is reported on the kind's error event."""
        await dispatch(app, client, "join-quick-match", "not-a-uuid")
        app.notify_chat.assert_awaited_once_with(client, "qm-error", "Invalid room id")
        app.join_chat.assert_not_awaited()

    async def test_missing_room_id(self, app, client):
        """Test that a message without the kind's room id is refused."""
        await dispatch(app, client, "send-message", {"sessionId": str(uuid4()), "content": "hi"})
        app.notify_chat.assert_awaited_once_with(client, "error", "Missing room id")

    async def test_invalid_payload(self, app, client):
        """Test that a non-object payload is refused."""
        await dispatch(app, client, "send-qm-message", "hello")
        app.notify_chat.assert_awaited_once_with(client, "qm-error", "Invalid message payload")


class TestRegisterHandlers:
    """Tests for wiring handlers onto the Socket.IO server."""

    @pytest.fixture
    def server(self, app):
        sio = socketio.AsyncServer(async_mode="asgi")
        register_realtime_handlers(sio, app)
        return sio

    def test_every_event_registered(self, server):
        """Test that the handshake, disconnect and every client event have handlers."""
        assert set(server.handlers["/"]) == {"connect", "disconnect", *CLIENT_EVENTS}

    async def test_connect_stores_client(self, server, app):
        """Test that an accepted handshake saves the client in the socket session."""
        app.authenticate.return_value = User(name="Asha", email="asha@vitstudent.ac.in", password_hash="x")

        await server.handlers["/"]["connect"]("sid-1", {}, {"token": "abc"})

        (stored,) = app.connect_chat.await_args.args
        assert stored.sid == "sid-1"
        assert stored.name == "Asha"

    async def test_disconnect_leaves_rooms(self, server, app):
        """Test that a disconnect is forwarded to chat."""
        await server.handlers["/"]["disconnect"]("sid-1", "client disconnect")
        app.disconnect_chat.assert_awaited_once_with("sid-1")

    async def test_store_failure_reported(self, server, app, client):
        """Test that a database outage becomes a generic error event."""
        app.get_chat_client.return_value = client
        app.join_chat.side_effect = ServerSelectionTimeoutError("no servers")

        await server.handlers["/"]["join-ride"]("sid-1", str(uuid4()))

        app.notify_chat.assert_awaited_once_with(client, "error", "Chat is temporarily unavailable")


def test_events_cover_both_room_kinds():
    """Test that every room kind can be joined, left and written to."""
    by_kind = {kind: {action for action, k in CLIENT_EVENTS.values() if k == kind} for kind in RoomKind}
    assert by_kind == {kind: {"join", "leave", "send"} for kind in RoomKind}

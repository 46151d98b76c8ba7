"""Shared pytest fixtures.

MongoDB is replaced by in-memory stores that honour the same conditions as
the real queries. Every fake store call yields to the event loop first so
concurrent operations interleave the way they would against a database.
"""

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator
from datetime import datetime
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock
from uuid import UUID, uuid4

import pytest

from rideshare.config import Config
from rideshare.core.geo import haversine_distance
from rideshare.core.modules.chat.hub import ChatClient, RoomHub
from rideshare.core.modules.chat.service import ChatService
from rideshare.core.modules.message.models import QuickMatchMessage, RideMessage
from rideshare.core.modules.message.service import MessageService
from rideshare.core.modules.quickmatch.models import Destination, Participant, QuickMatchSession, SessionStatus
from rideshare.core.modules.quickmatch.service import QuickMatchService
from rideshare.core.modules.ride.models import Place, Ride, RideParticipant
from rideshare.core.modules.ride.service import RideService
from rideshare.utils import as_utc, now

CAMPUS = (12.97, 79.15)


class InMemorySessionStore:
    def __init__(self) -> None:
        self.sessions: dict[UUID, QuickMatchSession] = {}

    @staticmethod
    def _is_active(session: QuickMatchSession, current: datetime) -> bool:
        return session.is_active and as_utc(session.expires_at) > current

    async def ensure_indexes(self) -> None:
        await asyncio.sleep(0)

    async def insert(self, session: QuickMatchSession) -> None:
        await asyncio.sleep(0)
        self.sessions[session.id] = session.model_copy(deep=True)

    async def get(self, session_id: UUID) -> QuickMatchSession | None:
        await asyncio.sleep(0)
        session = self.sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def find_active_for_user(self, user_id: UUID, current: datetime) -> QuickMatchSession | None:
        await asyncio.sleep(0)
        for session in self.sessions.values():
            if session.is_member(user_id) and self._is_active(session, current):
                return session.model_copy(deep=True)
        return None

    async def find_nearby(
        self,
        user_id: UUID,
        latitude: float,
        longitude: float,
        radius: float,
        current: datetime,
        destination_id: str | None = None,
        limit: int = 10,
    ) -> list[QuickMatchSession]:
        await asyncio.sleep(0)
        found = []
        for session in self.sessions.values():
            if not self._is_active(session, current) or session.is_member(user_id):
                continue
            if destination_id and session.destination.id != destination_id:
                continue
            distance = haversine_distance(latitude, longitude, session.location.latitude, session.location.longitude)
            if distance <= radius:
                found.append((distance, session.model_copy(deep=True)))
        found.sort(key=lambda item: item[0])
        return [session for _, session in found[:limit]]

    async def add_participant(
        self, session_id: UUID, participant: Participant, current: datetime
    ) -> QuickMatchSession | None:
        await asyncio.sleep(0)
        session = self.sessions.get(session_id)
        if (
            session is None
            or not self._is_active(session, current)
            or session.is_closed
            or session.is_member(participant.user_id)
            or len(session.participants) + 1 >= session.max_participants
        ):
            return None
        session.participants.append(participant)
        session.status = SessionStatus.MATCHED
        session.updated_at = current
        return session.model_copy(deep=True)

    async def remove_participant(self, session_id: UUID, user_id: UUID, current: datetime) -> QuickMatchSession | None:
        await asyncio.sleep(0)
        session = self.sessions.get(session_id)
        if session is None or session.get_participant(user_id) is None:
            return None
        session.participants = [p for p in session.participants if p.user_id != user_id]
        session.status = SessionStatus.MATCHED if session.participants else SessionStatus.SEARCHING
        session.updated_at = current
        return session.model_copy(deep=True)

    async def toggle_closed(self, session_id: UUID, creator_id: UUID, current: datetime) -> QuickMatchSession | None:
        await asyncio.sleep(0)
        session = self.sessions.get(session_id)
        if session is None or session.creator_id != creator_id:
            return None
        session.is_closed = not session.is_closed
        session.updated_at = current
        return session.model_copy(deep=True)

    async def delete(self, session_id: UUID) -> bool:
        await asyncio.sleep(0)
        return self.sessions.pop(session_id, None) is not None


class InMemoryRideMessageStore:
    def __init__(self) -> None:
        self.messages: list[RideMessage] = []

    async def ensure_indexes(self) -> None:
        await asyncio.sleep(0)

    async def insert(self, message: RideMessage) -> None:
        await asyncio.sleep(0)
        self.messages.append(message)

    async def recent(self, ride_id: UUID, limit: int) -> list[RideMessage]:
        await asyncio.sleep(0)
        return [m for m in self.messages if m.ride_id == ride_id][-limit:]


class InMemoryQuickMatchMessageStore:
    def __init__(self) -> None:
        self.messages: list[QuickMatchMessage] = []

    async def ensure_indexes(self) -> None:
        await asyncio.sleep(0)

    async def insert(self, message: QuickMatchMessage) -> None:
        await asyncio.sleep(0)
        self.messages.append(message)

    async def recent(self, session_id: UUID, limit: int) -> list[QuickMatchMessage]:
        await asyncio.sleep(0)
        return [m for m in self.messages if m.session_id == session_id][-limit:]

    async def delete_by_session(self, session_id: UUID) -> int:
        await asyncio.sleep(0)
        before = len(self.messages)
        self.messages = [m for m in self.messages if m.session_id != session_id]
        return before - len(self.messages)


def _matches(doc: dict[str, Any], query: dict[str, Any]) -> bool:
    for key, expected in query.items():
        if isinstance(expected, dict) and "$in" in expected:
            if doc.get(key) not in expected["$in"]:
                return False
        elif doc.get(key) != expected:
            return False
    return True


class InMemoryCollection:
    """Just enough of a collection for services that look documents up by key."""

    def __init__(self) -> None:
        self.docs: dict[Any, dict[str, Any]] = {}

    def _match(self, query: dict[str, Any]) -> dict[str, Any] | None:
        return next((doc for doc in self.docs.values() if _matches(doc, query)), None)

    async def create_index(self, *args: Any, **kwargs: Any) -> None:
        await asyncio.sleep(0)

    async def insert_one(self, doc: dict[str, Any]) -> None:
        await asyncio.sleep(0)
        self.docs[doc["_id"]] = doc

    async def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        await asyncio.sleep(0)
        return self._match(query)

    async def find(self, query: dict[str, Any]) -> AsyncIterator[dict[str, Any]]:
        for doc in list(self.docs.values()):
            await asyncio.sleep(0)
            if _matches(doc, query):
                yield doc

    async def update_one(self, query: dict[str, Any], update: dict[str, Any]) -> None:
        await asyncio.sleep(0)
        doc = self._match(query)
        if doc is None:
            return
        for field, value in update.get("$addToSet", {}).items():
            if value not in doc.setdefault(field, []):
                doc[field].append(value)
        for field, value in update.get("$pull", {}).items():
            doc[field] = [item for item in doc.get(field, []) if item != value]

    async def delete_one(self, query: dict[str, Any]) -> None:
        await asyncio.sleep(0)
        doc = self._match(query)
        if doc is not None:
            del self.docs[doc["_id"]]


class InMemorySocketServer:
    """Socket.IO server stand-in: rooms and sessions in memory, emitted events recorded per socket.

    Like the real server, every socket sits in a room named after its sid.
    """

    def __init__(self) -> None:
        self.room_members: dict[str, dict[str, None]] = {}
        self.sessions: dict[str, dict[str, Any]] = {}
        self.sent: dict[str, list[tuple[str, Any]]] = defaultdict(list)

    def connect(self, sid: str) -> None:
        self.sessions[sid] = {}
        self.room_members.setdefault(sid, {})[sid] = None

    async def enter_room(self, sid: str, room: str, namespace: str | None = None) -> None:
        self.room_members.setdefault(room, {})[sid] = None

    async def leave_room(self, sid: str, room: str, namespace: str | None = None) -> None:
        self.room_members.get(room, {}).pop(sid, None)

    async def close_room(self, room: str, namespace: str | None = None) -> None:
        self.room_members.pop(room, None)

    def rooms(self, sid: str, namespace: str | None = None) -> list[str]:
        return [room for room, members in self.room_members.items() if sid in members]

    async def emit(
        self, event: str, data: Any = None, to: str | list[str] | None = None, skip_sid: str | None = None, **kwargs: Any
    ) -> None:
        targets = to if isinstance(to, list) else [to]
        recipients = dict.fromkeys(sid for room in targets for sid in self.room_members.get(room, {}))
        for sid in recipients:
            if sid != skip_sid:
                self.sent[sid].append((event, data))

    async def get_session(self, sid: str, namespace: str | None = None) -> dict[str, Any]:
        return self.sessions[sid]

    async def save_session(self, sid: str, session: dict[str, Any], namespace: str | None = None) -> None:
        self.sessions[sid] = session

    def received(self, client: ChatClient, event: str) -> list[Any]:
        return [data for name, data in self.sent[client.sid] if name == event]


@pytest.fixture
def config():
    return Config(database_url="mongodb://localhost:27017/rideshare_test")


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def ride_messages():
    return InMemoryRideMessageStore()


@pytest.fixture
def qm_messages():
    return InMemoryQuickMatchMessageStore()


@pytest.fixture
def make_collection():
    return InMemoryCollection


@pytest.fixture
def rides_collection(make_collection):
    return make_collection()


@pytest.fixture
def sockets():
    return InMemorySocketServer()


@pytest.fixture
def hub(sockets):
    room_hub = RoomHub(sockets)
    room_hub.start()
    return room_hub


@pytest.fixture
def core(config, hub, session_store, ride_messages, qm_messages, rides_collection):
    """Core stand-in wiring real services to in-memory stores."""
    database = MagicMock()
    database.get_collection.return_value = rides_collection

    services = SimpleNamespace(
        quick_match=QuickMatchService(database, store=session_store),
        message=MessageService(database, rides=ride_messages, quick_match=qm_messages),
        ride=RideService(database),
        chat=ChatService(database),
    )
    fake_core = SimpleNamespace(config=config, hub=hub, services=services)
    for service in vars(services).values():
        service.set_core(fake_core)
    return fake_core


@pytest.fixture
def quick_match(core):
    return core.services.quick_match


@pytest.fixture
def chat(core):
    return core.services.chat


@pytest.fixture
def destination():
    return Destination(id="D1", name="Katpadi Station")


@pytest.fixture
def make_client(sockets):
    """Connected socket for a user, as left behind by a successful handshake."""

    def factory(user_id: UUID, name: str) -> ChatClient:
        client = ChatClient(sid=uuid4().hex, user_id=user_id, name=name)
        sockets.connect(client.sid)
        sockets.sessions[client.sid] = {"client": client.model_dump()}
        return client

    return factory


@pytest.fixture
def make_ride(rides_collection):
    def factory(participants: list[tuple[UUID, str]]) -> Ride:
        ride = Ride(
            creator_id=participants[0][0],
            from_location=Place(id="campus", name="Main Gate"),
            to_location=Place(id="airport", name="Chennai Airport"),
            date_time=now(),
            total_seats=4,
            participants=[RideParticipant(user_id=uid, name=name) for uid, name in participants],
        )
        rides_collection.docs[ride.id] = ride.to_mongo()
        return ride

    return factory


@pytest.fixture
def start_session(quick_match, destination):
    """Create a session at the campus coordinates unless told otherwise."""

    async def factory(
        user_id: UUID,
        name: str = "Asha",
        latitude: float = CAMPUS[0],
        longitude: float = CAMPUS[1],
        max_participants: int | None = None,
        to: Destination | None = None,
    ) -> QuickMatchSession:
        return await quick_match.create_session(
            user_id, name, latitude, longitude, to or destination, max_participants=max_participants
        )

    return factory

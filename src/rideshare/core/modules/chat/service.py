from typing import Any
from uuid import UUID

import structlog

from rideshare.core.core import Service
from rideshare.core.modules.chat.hub import ChatClient, RoomHub
from rideshare.core.modules.chat.models import POLICIES, RoomKind, RoomPolicy, policy_for_room
from rideshare.core.modules.message.models import QuickMatchMessagePayload, RideMessagePayload
from rideshare.errors import AccessDeniedError, UserError

logger = structlog.get_logger(__name__)


class ChatService(Service):
    """Realtime chat rooms for scheduled rides and Quick Match sessions.

    A socket never sits in the shared room itself: it enters the sub-room of
    its own user, and every broadcast addresses the sub-rooms of the room's
    current members. Someone who has left a session stops receiving its
    traffic even if their socket never left.

    Guard failures never escape to the transport: they are sent back to the
    offending socket as the room kind's error event.
    """

    @property
    def hub(self) -> RoomHub:
        return self.core.hub

    async def connect(self, client: ChatClient) -> None:
        await self.hub.save_client(client)

    async def get_client(self, sid: str) -> ChatClient:
        return await self.hub.get_client(sid)

    async def notify(self, client: ChatClient, event: str, message: str) -> None:
        await self.hub.emit(event, message, to=client.sid)

    async def join_room(self, client: ChatClient, room_id: UUID, kind: RoomKind) -> None:
        """Subscribe to a room, replay recent history, and announce the arrival.

        Joining a room the socket is already in does nothing.
        """
        policy = POLICIES[kind]
        try:
            members = await self._members(room_id, policy)
            identity = self._identity(client, members, policy)
        except UserError as e:
            await self.notify(client, policy.error_event, str(e))
            return

        member_room = policy.member_room(room_id, client.user_id)
        if member_room in self.hub.rooms_of(client.sid):
            return

        await self.hub.join(client.sid, member_room)
        client.rooms[policy.room_key(room_id)] = identity
        await self.hub.save_client(client)
        await self.hub.emit(policy.previous_messages_event, await self._history(room_id, policy), to=client.sid)

        if policy.announces_presence and policy.user_joined_event:
            await self.hub.emit(
                policy.user_joined_event,
                {"nickname": identity},
                to=policy.member_rooms(room_id, members),
                skip_sid=client.sid,
            )
        logger.debug("chat_room_joined", room=member_room, sid=client.sid)

    async def leave_room(self, client: ChatClient, room_id: UUID, kind: RoomKind) -> None:
        policy = POLICIES[kind]
        member_room = policy.member_room(room_id, client.user_id)
        if member_room not in self.hub.rooms_of(client.sid):
            return

        await self.hub.leave(client.sid, member_room)
        identity = client.rooms.pop(policy.room_key(room_id), None)
        await self.hub.save_client(client)
        if identity is not None:
            await self._announce_departure(room_id, policy, client.user_id, identity)

    async def send_message(self, client: ChatClient, room_id: UUID, kind: RoomKind, content: Any) -> None:
        """Persist a message and deliver it to every current member, sender included.

        Membership is read again on every send because a Quick Match session
        can expire, be cancelled or lose members while its room is open.
        """
        policy = POLICIES[kind]
        try:
            members = await self._members(room_id, policy)
            identity = self._identity(client, members, policy)
            payload = await self._store_message(client, room_id, policy, identity, content)
        except UserError as e:
            await self.notify(client, policy.error_event, str(e))
            return

        await self.hub.emit(policy.new_message_event, payload, to=policy.member_rooms(room_id, members))
        logger.debug("chat_message_sent", room=policy.room_key(room_id), sid=client.sid)

    async def disconnect(self, sid: str) -> None:
        """Leave every room the socket joined, announcing it where the room expects presence."""
        client = await self.hub.get_client(sid)
        joined = self.hub.rooms_of(sid)
        for room, identity in client.rooms.items():
            policy = policy_for_room(room)
            if policy is None:
                continue
            room_id = policy.room_id_of(room)
            member_room = policy.member_room(room_id, client.user_id)
            if member_room not in joined:
                continue
            await self.hub.leave(sid, member_room)
            await self._announce_departure(room_id, policy, client.user_id, identity)

    async def remove_member(
        self, kind: RoomKind, room_id: UUID, user_id: UUID, identity: str | None, remaining: list[UUID]
    ) -> None:
        """Evict a user who is no longer a member, on every worker, and tell the others."""
        policy = POLICIES[kind]
        await self.hub.close(policy.member_room(room_id, user_id))
        if policy.announces_presence and policy.user_left_event and identity is not None:
            await self.hub.emit(
                policy.user_left_event, {"nickname": identity}, to=policy.member_rooms(room_id, remaining)
            )

    async def close_room(self, kind: RoomKind, room_id: UUID, member_ids: list[UUID]) -> None:
        policy = POLICIES[kind]
        for user_id in member_ids:
            await self.hub.close(policy.member_room(room_id, user_id))
        logger.debug("chat_room_closed", room=policy.room_key(room_id))

    async def _announce_departure(self, room_id: UUID, policy: RoomPolicy, user_id: UUID, identity: str) -> None:
        if not policy.announces_presence or not policy.user_left_event:
            return
        try:
            members = await self._members(room_id, policy)
        except UserError:
            return  # Room is gone, nobody left to tell
        if user_id not in members:
            return  # Announced when the membership ended
        others = [member_id for member_id in members if member_id != user_id]
        await self.hub.emit(policy.user_left_event, {"nickname": identity}, to=policy.member_rooms(room_id, others))

    async def _members(self, room_id: UUID, policy: RoomPolicy) -> dict[UUID, str]:
        """Identity by user id of everyone allowed in the room."""
        if policy.kind == RoomKind.QUICK_MATCH:
            return await self.core.services.quick_match.get_room_members(room_id)
        return await self.core.services.ride.get_room_members(room_id)

    @staticmethod
    def _identity(client: ChatClient, members: dict[UUID, str], policy: RoomPolicy) -> str:
        identity = members.get(client.user_id)
        if identity is None:
            raise AccessDeniedError(policy.not_member_message)
        return identity

    async def _history(self, room_id: UUID, policy: RoomPolicy) -> list[dict[str, Any]]:
        messages = self.core.services.message
        if policy.kind == RoomKind.QUICK_MATCH:
            qm_messages = await messages.get_recent_quick_match_messages(room_id, policy.history_limit)
            return [QuickMatchMessagePayload.from_domain(m).model_dump(mode="json", by_alias=True) for m in qm_messages]
        ride_messages = await messages.get_recent_ride_messages(room_id, policy.history_limit)
        return [RideMessagePayload.from_domain(m).model_dump(mode="json", by_alias=True) for m in ride_messages]

    async def _store_message(
        self, client: ChatClient, room_id: UUID, policy: RoomPolicy, identity: str, content: Any
    ) -> dict[str, Any]:
        messages = self.core.services.message
        if policy.kind == RoomKind.QUICK_MATCH:
            qm_message = await messages.create_quick_match_message(room_id, client.user_id, identity, content)
            return QuickMatchMessagePayload.from_domain(qm_message).model_dump(mode="json", by_alias=True)
        ride_message = await messages.create_ride_message(room_id, client.user_id, identity, content)
        return RideMessagePayload.from_domain(ride_message).model_dump(mode="json", by_alias=True)

"""Room kinds and the events each kind speaks.

Ride chat and Quick Match chat share one code path; the policy decides who
may enter, which identity is shown and which event names are used.
"""

from collections.abc import Iterable
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class RoomKind(StrEnum):
    RIDE = "ride"
    QUICK_MATCH = "quick_match"


class RoomPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: RoomKind
    room_prefix: str
    history_limit: int
    announces_presence: bool  # Broadcast joined/left events to the room
    previous_messages_event: str
    new_message_event: str
    error_event: str
    not_member_message: str
    user_joined_event: str | None = None
    user_left_event: str | None = None

    def room_key(self, room_id: UUID) -> str:
        return f"{self.room_prefix}-{room_id}"

    def room_id_of(self, room_key: str) -> UUID:
        return UUID(room_key.split("-", 1)[1])

    def member_room(self, room_id: UUID, user_id: UUID) -> str:
        """Per-member sub-room; deliveries address current members only."""
        return f"{self.room_key(room_id)}:{user_id}"

    def member_rooms(self, room_id: UUID, user_ids: Iterable[UUID]) -> list[str]:
        return [self.member_room(room_id, user_id) for user_id in user_ids]


RIDE_POLICY = RoomPolicy(
    kind=RoomKind.RIDE,
    room_prefix="ride",
    history_limit=50,
    announces_presence=False,
    previous_messages_event="previous-messages",
    new_message_event="new-message",
    error_event="error",
    not_member_message="You are not a participant of this ride",
)

QUICK_MATCH_POLICY = RoomPolicy(
    kind=RoomKind.QUICK_MATCH,
    room_prefix="qm",
    history_limit=30,
    announces_presence=True,
    previous_messages_event="qm-previous-messages",
    new_message_event="qm-new-message",
    error_event="qm-error",
    not_member_message="You are not a member of this Quick Match",
    user_joined_event="qm-user-joined",
    user_left_event="qm-user-left",
)

POLICIES: dict[RoomKind, RoomPolicy] = {
    RoomKind.RIDE: RIDE_POLICY,
    RoomKind.QUICK_MATCH: QUICK_MATCH_POLICY,
}


def policy_for_room(room_key: str) -> RoomPolicy | None:
    prefix = room_key.split("-", 1)[0]
    return next((p for p in POLICIES.values() if p.room_prefix == prefix), None)

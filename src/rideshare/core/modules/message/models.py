"""Chat message models for ride rooms and Quick Match rooms."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from rideshare.core.db import MongoModel
from rideshare.utils import now

QUICK_MATCH_MESSAGE_MAX_LENGTH = 500


class RideMessage(MongoModel):
    """Message in a scheduled ride's chat. Indexed on (ride_id, created_at)."""

    ride_id: UUID
    sender_id: UUID
    sender_name: str  # Cached so history loads without a user lookup
    content: str
    created_at: datetime = Field(default_factory=now)


class QuickMatchMessage(MongoModel):
    """Message in a Quick Match room.

    Indexed on (session_id, created_at) and created_at (TTL). The session
    reference is weak: the message may outlive its session until its own TTL.
    """

    session_id: UUID
    sender_id: UUID  # Internal only
    sender_nickname: str
    content: str = Field(..., max_length=QUICK_MATCH_MESSAGE_MAX_LENGTH)
    created_at: datetime = Field(default_factory=now)


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, serialize_by_alias=True)


class RideMessagePayload(_Payload):
    """Ride chat message as broadcast to the room. Ride chat shows real identities."""

    id: UUID
    ride_id: UUID
    sender_id: UUID
    sender_name: str
    content: str
    created_at: datetime

    @classmethod
    def from_domain(cls, message: RideMessage) -> "RideMessagePayload":
        return cls(
            id=message.id,
            ride_id=message.ride_id,
            sender_id=message.sender_id,
            sender_name=message.sender_name,
            content=message.content,
            created_at=message.created_at,
        )


class QuickMatchMessagePayload(_Payload):
    """Quick Match message as broadcast to the room; sender_id is deliberately absent."""

    id: UUID
    session_id: UUID
    sender_nickname: str
    content: str
    created_at: datetime

    @classmethod
    def from_domain(cls, message: QuickMatchMessage) -> "QuickMatchMessagePayload":
        return cls(
            id=message.id,
            session_id=message.session_id,
            sender_nickname=message.sender_nickname,
            content=message.content,
            created_at=message.created_at,
        )

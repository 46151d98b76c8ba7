"""Scheduled ride documents, read only here to authorize ride chat."""

from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, Field

from rideshare.core.db import MongoModel
from rideshare.utils import now


class RideStatus(StrEnum):
    ACTIVE = "active"
    FULL = "full"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Place(BaseModel):
    id: str
    name: str


class RideParticipant(BaseModel):
    user_id: UUID
    name: str
    joined_at: datetime = Field(default_factory=now)


class Ride(MongoModel):
    """Planned shared cab. The creator is listed among participants."""

    creator_id: UUID
    from_location: Place
    to_location: Place
    date_time: datetime
    total_seats: int
    participants: list[RideParticipant] = Field(default_factory=list)
    status: RideStatus = RideStatus.ACTIVE
    is_closed: bool = False
    created_at: datetime = Field(default_factory=now)

    def is_participant(self, user_id: UUID) -> bool:
        return any(p.user_id == user_id for p in self.participants)

    @property
    def members(self) -> dict[UUID, str]:
        return {p.user_id: p.name for p in self.participants}

"""Quick Match session models.

A session is an ephemeral matching pool started by one student (the creator)
that others nearby can join. Participants never include the creator.
"""

from datetime import datetime, timedelta
from enum import StrEnum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from rideshare.core.db import MongoModel
from rideshare.utils import as_utc, now, seconds_until

MIN_PARTICIPANTS = 2
MAX_PARTICIPANTS = 6
DEFAULT_MAX_PARTICIPANTS = 4
DEFAULT_SEARCH_RADIUS = 100  # meters
MIN_SEARCH_RADIUS = 50
MAX_SEARCH_RADIUS = 500
NEARBY_RESULT_LIMIT = 10


class SessionStatus(StrEnum):
    SEARCHING = "searching"
    MATCHED = "matched"
    EXPIRED = "expired"
    COMPLETED = "completed"


ACTIVE_STATUSES = (SessionStatus.SEARCHING, SessionStatus.MATCHED)


class GeoPoint(BaseModel):
    """GeoJSON point; coordinates are [longitude, latitude]."""

    type: Literal["Point"] = "Point"
    coordinates: tuple[float, float]

    @classmethod
    def from_lat_lon(cls, latitude: float, longitude: float) -> "GeoPoint":
        return cls(coordinates=(longitude, latitude))

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]


class Destination(BaseModel):
    id: str = Field(..., min_length=1, description="Location catalog id")
    name: str = Field(..., min_length=1, description="Human-readable destination")


class MeetupPoint(BaseModel):
    name: str = ""
    coordinates: tuple[float, float] | None = None  # [longitude, latitude]


class Participant(BaseModel):
    user_id: UUID
    nickname: str
    location: GeoPoint | None = None
    joined_at: datetime = Field(default_factory=now)


class QuickMatchSession(MongoModel):
    """Ephemeral matching pool.

    Indexed on location (2dsphere), (status, expires_at), creator_id,
    participants.user_id, expires_at (TTL, expireAfterSeconds=0).
    """

    creator_id: UUID
    creator_nickname: str
    location: GeoPoint
    destination: Destination
    meetup_point: MeetupPoint | None = None
    max_participants: int = DEFAULT_MAX_PARTICIPANTS
    radius: int = DEFAULT_SEARCH_RADIUS
    participants: list[Participant] = Field(default_factory=list)
    status: SessionStatus = SessionStatus.SEARCHING
    is_closed: bool = False
    expires_at: datetime
    created_at: datetime = Field(default_factory=now)
    updated_at: datetime = Field(default_factory=now)

    @classmethod
    def lifetime_from(cls, created_at: datetime, minutes: int) -> datetime:
        return created_at + timedelta(minutes=minutes)

    @property
    def participant_count(self) -> int:
        return len(self.participants) + 1  # creator is not in participants

    @property
    def available_spots(self) -> int:
        return self.max_participants - self.participant_count

    @property
    def is_full(self) -> bool:
        return self.available_spots <= 0

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def is_expired(self, current: datetime | None = None) -> bool:
        return as_utc(self.expires_at) <= (current or now())

    def time_remaining(self, current: datetime | None = None) -> int:
        return seconds_until(self.expires_at, current)

    def is_creator(self, user_id: UUID) -> bool:
        return self.creator_id == user_id

    def get_participant(self, user_id: UUID) -> Participant | None:
        return next((p for p in self.participants if p.user_id == user_id), None)

    def is_member(self, user_id: UUID) -> bool:
        return self.is_creator(user_id) or self.get_participant(user_id) is not None

    def nickname_of(self, user_id: UUID) -> str | None:
        """Nickname the user is shown under in this session, None for non-members."""
        if self.is_creator(user_id):
            return self.creator_nickname
        participant = self.get_participant(user_id)
        return participant.nickname if participant else None

    @property
    def nicknames(self) -> list[str]:
        return [self.creator_nickname, *(p.nickname for p in self.participants)]

    @property
    def members(self) -> dict[UUID, str]:
        """Nickname by user id, creator first."""
        return {self.creator_id: self.creator_nickname, **{p.user_id: p.nickname for p in self.participants}}


# === API views: never carry raw user ids ===


class _View(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, serialize_by_alias=True)


class NearbySessionView(_View):
    """Discovery card for a session near the caller."""

    id: UUID
    destination: Destination
    creator_nickname: str
    participant_count: int
    max_participants: int
    available_spots: int
    distance: int = Field(..., description="Meters from the caller, rounded")
    status: SessionStatus
    meetup_point: MeetupPoint | None
    expires_at: datetime
    time_remaining: int = Field(..., description="Seconds until the session expires")
    created_at: datetime

    @classmethod
    def from_domain(cls, session: QuickMatchSession, distance: float, current: datetime) -> "NearbySessionView":
        return cls(
            id=session.id,
            destination=session.destination,
            creator_nickname=session.creator_nickname,
            participant_count=session.participant_count,
            max_participants=session.max_participants,
            available_spots=session.available_spots,
            distance=round(distance),
            status=session.status,
            meetup_point=session.meetup_point,
            expires_at=session.expires_at,
            time_remaining=session.time_remaining(current),
            created_at=session.created_at,
        )


class SessionView(_View):
    """Session as seen by one of its members."""

    id: UUID
    my_nickname: str
    is_creator: bool
    destination: Destination
    status: SessionStatus
    is_closed: bool
    participant_count: int
    max_participants: int
    available_spots: int
    participants: list[str] = Field(..., description="Nicknames, creator first")
    meetup_point: MeetupPoint | None
    expires_at: datetime
    time_remaining: int
    created_at: datetime

    @classmethod
    def for_member(cls, session: QuickMatchSession, user_id: UUID, current: datetime) -> "SessionView":
        return cls(
            id=session.id,
            my_nickname=session.nickname_of(user_id) or "",
            is_creator=session.is_creator(user_id),
            destination=session.destination,
            status=session.status,
            is_closed=session.is_closed,
            participant_count=session.participant_count,
            max_participants=session.max_participants,
            available_spots=session.available_spots,
            participants=session.nicknames,
            meetup_point=session.meetup_point,
            expires_at=session.expires_at,
            time_remaining=session.time_remaining(current),
            created_at=session.created_at,
        )

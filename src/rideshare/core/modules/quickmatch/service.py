from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from pymongo.asynchronous.database import AsyncDatabase

from rideshare.core.core import Service
from rideshare.core.geo import haversine_distance
from rideshare.core.modules.chat.models import RoomKind
from rideshare.core.modules.quickmatch.models import (
    DEFAULT_MAX_PARTICIPANTS,
    DEFAULT_SEARCH_RADIUS,
    MAX_PARTICIPANTS,
    MAX_SEARCH_RADIUS,
    MIN_PARTICIPANTS,
    MIN_SEARCH_RADIUS,
    Destination,
    GeoPoint,
    MeetupPoint,
    NearbySessionView,
    Participant,
    QuickMatchSession,
    SessionView,
)
from rideshare.core.modules.quickmatch.store import COLLECTION_NAME, SessionStore
from rideshare.errors import (
    AccessDeniedError,
    ActiveSessionExistsError,
    AlreadyJoinedError,
    CreatorCannotLeaveError,
    NotFoundError,
    NotParticipantError,
    SelfJoinError,
    SessionClosedError,
    SessionExpiredError,
    SessionFullError,
    SessionInactiveError,
    ValidationError,
)
from rideshare.utils import now

logger = structlog.get_logger(__name__)


def validate_coordinates(latitude: float | None, longitude: float | None) -> tuple[float, float]:
    """Both coordinates are required and must lie on the globe."""
    if latitude is None or longitude is None:
        raise ValidationError("Missing required fields: latitude, longitude")
    if not -90 <= latitude <= 90:
        raise ValidationError("Latitude must be between -90 and 90")
    if not -180 <= longitude <= 180:
        raise ValidationError("Longitude must be between -180 and 180")
    return float(latitude), float(longitude)


def clamp_max_participants(value: int | None) -> int:
    if value is None:
        return DEFAULT_MAX_PARTICIPANTS
    return max(MIN_PARTICIPANTS, min(MAX_PARTICIPANTS, value))


def clamp_search_radius(value: float | None) -> float:
    """Discovery radius in meters, capped at MAX_SEARCH_RADIUS."""
    if value is None or value <= 0:
        return DEFAULT_SEARCH_RADIUS
    return min(value, MAX_SEARCH_RADIUS)


class QuickMatchService(Service):
    """Quick Match session lifecycle and proximity matching.

    Expiry is enforced twice: the store deletes documents through its TTL
    index, and every guard here treats a session past expires_at as gone,
    since TTL deletion runs in the background and may lag.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]], store: SessionStore | None = None) -> None:
        super().__init__(database)
        self.store = store if store is not None else SessionStore(database.get_collection(COLLECTION_NAME))

    async def on_start(self) -> None:
        await self.store.ensure_indexes()

    async def create_session(
        self,
        user_id: UUID,
        display_name: str,
        latitude: float | None,
        longitude: float | None,
        destination: Destination | None,
        meetup_point: MeetupPoint | None = None,
        max_participants: int | None = None,
        radius: int | None = None,
    ) -> QuickMatchSession:
        """Start a new session at the caller's position."""
        latitude, longitude = validate_coordinates(latitude, longitude)
        if destination is None:
            raise ValidationError("Missing required field: destination")

        current = now()
        existing = await self.store.find_active_for_user(user_id, current)
        if existing is not None:
            raise ActiveSessionExistsError(existing.id)

        session = QuickMatchSession(
            creator_id=user_id,
            creator_nickname=display_name,
            location=GeoPoint.from_lat_lon(latitude, longitude),
            destination=destination,
            meetup_point=meetup_point,
            max_participants=clamp_max_participants(max_participants),
            radius=max(MIN_SEARCH_RADIUS, int(clamp_search_radius(radius))),
            expires_at=QuickMatchSession.lifetime_from(current, self.core.config.quick_match_ttl_minutes),
            created_at=current,
            updated_at=current,
        )
        await self.store.insert(session)
        logger.info(
            "quick_match_session_created",
            session_id=session.id,
            destination_id=destination.id,
            max_participants=session.max_participants,
        )
        return session

    async def find_nearby(
        self,
        user_id: UUID,
        latitude: float | None,
        longitude: float | None,
        destination_id: str | None = None,
        radius: float | None = None,
    ) -> list[NearbySessionView]:
        """Joinable sessions around the caller, nearest first."""
        latitude, longitude = validate_coordinates(latitude, longitude)
        search_radius = clamp_search_radius(radius)
        current = now()

        sessions = await self.store.find_nearby(user_id, latitude, longitude, search_radius, current, destination_id)
        return [
            NearbySessionView.from_domain(
                session,
                haversine_distance(latitude, longitude, session.location.latitude, session.location.longitude),
                current,
            )
            for session in sessions
        ]

    async def join_session(
        self,
        user_id: UUID,
        display_name: str,
        session_id: UUID,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> QuickMatchSession:
        """Add the caller to a session's participants.

        The guards run once against a fresh read to pick the precise error,
        then again inside the atomic update. If the update loses a race the
        session is re-read so the caller learns what changed.
        """
        current = now()
        session = await self.store.get(session_id)
        self._ensure_joinable(session, user_id, current)

        other = await self.store.find_active_for_user(user_id, current)
        if other is not None and other.id != session_id:
            raise ActiveSessionExistsError(other.id)

        location = None
        if latitude is not None and longitude is not None:
            latitude, longitude = validate_coordinates(latitude, longitude)
            location = GeoPoint.from_lat_lon(latitude, longitude)

        participant = Participant(user_id=user_id, nickname=display_name, location=location, joined_at=current)
        updated = await self.store.add_participant(session_id, participant, current)
        if updated is None:
            self._ensure_joinable(await self.store.get(session_id), user_id, now())
            # Every guard passes on re-read but the update did not apply: the seat was taken and freed again
            raise SessionFullError

        logger.info("quick_match_session_joined", session_id=session_id, participant_count=updated.participant_count)
        return updated

    async def leave_session(self, user_id: UUID, session_id: UUID) -> None:
        """Remove the caller from a session they joined. Creators must cancel instead."""
        current = now()
        session = self._ensure_live(await self.store.get(session_id), current)

        if session.is_creator(user_id):
            raise CreatorCannotLeaveError
        if session.get_participant(user_id) is None:
            raise NotParticipantError

        updated = await self.store.remove_participant(session_id, user_id, current)
        if updated is None:
            # Deleted by cancel or TTL in the meantime, or a duplicate leave won
            self._ensure_live(await self.store.get(session_id), now())
            raise NotParticipantError

        await self.core.services.chat.remove_member(
            RoomKind.QUICK_MATCH, session_id, user_id, session.nickname_of(user_id), list(updated.members)
        )
        logger.info("quick_match_session_left", session_id=session_id, status=updated.status)

    async def cancel_session(self, user_id: UUID, session_id: UUID) -> None:
        """Delete a session and its messages (creator only)."""
        session = self._ensure_live(await self.store.get(session_id), now())
        if not session.is_creator(user_id):
            raise AccessDeniedError("Only the creator can cancel this session")

        await self.store.delete(session_id)
        await self.core.services.message.delete_quick_match_messages(session_id)
        await self.core.services.chat.close_room(RoomKind.QUICK_MATCH, session_id, list(session.members))
        logger.info("quick_match_session_cancelled", session_id=session_id)

    async def close_session(self, user_id: UUID, session_id: UUID) -> bool:
        """Toggle whether new participants may join; returns the new is_closed value."""
        current = now()
        session = self._ensure_live(await self.store.get(session_id), current)
        if not session.is_creator(user_id):
            raise AccessDeniedError("Only the creator can close this session")

        updated = await self.store.toggle_closed(session_id, user_id, current)
        if updated is None:
            raise NotFoundError("Session not found")

        logger.info("quick_match_session_toggled", session_id=session_id, is_closed=updated.is_closed)
        return updated.is_closed

    async def get_active_session(self, user_id: UUID) -> SessionView | None:
        current = now()
        session = await self.store.find_active_for_user(user_id, current)
        if session is None:
            return None
        return SessionView.for_member(session, user_id, current)

    async def get_session_by_id(self, user_id: UUID, session_id: UUID) -> SessionView:
        """Session details for its creator or participants."""
        current = now()
        session = self._ensure_live(await self.store.get(session_id), current)
        if not session.is_member(user_id):
            raise AccessDeniedError("Not authorized to view this session")
        return SessionView.for_member(session, user_id, current)

    async def get_room_members(self, session_id: UUID) -> dict[UUID, str]:
        """Nicknames by user id of a live session; the Quick Match chat audience."""
        return self._ensure_live(await self.store.get(session_id), now()).members

    # === Guards ===

    @staticmethod
    def _ensure_live(session: QuickMatchSession | None, current: datetime) -> QuickMatchSession:
        """Session exists and has not passed expires_at; expired sessions read as absent."""
        if session is None or session.is_expired(current):
            raise NotFoundError("Session not found")
        return session

    @staticmethod
    def _ensure_joinable(session: QuickMatchSession | None, user_id: UUID, current: datetime) -> QuickMatchSession:
        if session is None:
            raise NotFoundError("Session not found")
        if not session.is_active:
            raise SessionInactiveError
        if session.is_expired(current):
            raise SessionExpiredError
        if session.is_creator(user_id):
            raise SelfJoinError
        if session.get_participant(user_id) is not None:
            raise AlreadyJoinedError
        if session.is_closed:
            raise SessionClosedError
        if session.is_full:
            raise SessionFullError
        return session

"""Quick Match API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from rideshare.core.modules.quickmatch.models import Destination, MeetupPoint, NearbySessionView, SessionView
from rideshare.web.deps import AppDep, AuthTokenDep
from rideshare.web.openapi import ErrorResponse

router: APIRouter = APIRouter(tags=["quick-match"])


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, serialize_by_alias=True)


class CreateQuickMatchRequest(_CamelModel):
    """Request to start a Quick Match session at the caller's position.

    Coordinates and destination are validated by the service so missing
    values produce a 400 with a readable message.
    """

    latitude: float | None = Field(None, description="Caller latitude in degrees")
    longitude: float | None = Field(None, description="Caller longitude in degrees")
    destination: Destination | None = Field(None, description="Where the group is heading")
    meetup_point: MeetupPoint | None = Field(None, description="Suggested place to meet")
    max_participants: int | None = Field(None, description="Group size including creator, clamped to 2-6")
    radius: int | None = Field(None, description="Discovery radius in meters, at most 500")

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "latitude": 12.9692,
                    "longitude": 79.1559,
                    "destination": {"id": "katpadi", "name": "Katpadi Railway Station"},
                    "maxParticipants": 4,
                }
            ]
        }
    )


class JoinQuickMatchRequest(_CamelModel):
    latitude: float | None = Field(None, description="Joiner latitude in degrees")
    longitude: float | None = Field(None, description="Joiner longitude in degrees")


class SessionEnvelope(_CamelModel):
    message: str | None = None
    session: SessionView | None


class NearbyResponse(_CamelModel):
    count: int
    sessions: list[NearbySessionView]


class CloseResponse(_CamelModel):
    message: str
    is_closed: bool


class MessageResponse(_CamelModel):
    message: str


@router.post(
    "/quick-match",
    summary="Start Quick Match",
    description="Create a Quick Match session that expires after 10 minutes. A user can hold one active session.",
    operation_id="createQuickMatch",
    status_code=201,
    responses={
        201: {"description": "Session created"},
        400: {"model": ErrorResponse, "description": "Missing or invalid coordinates or destination"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        409: {"model": ErrorResponse, "description": "Caller already has an active session"},
    },
)
async def create_quick_match(request: CreateQuickMatchRequest, app: AppDep, auth_token: AuthTokenDep) -> SessionEnvelope:
    session = await app.create_quick_match(
        auth_token,
        request.latitude,
        request.longitude,
        request.destination,
        request.meetup_point,
        request.max_participants,
        request.radius,
    )
    return SessionEnvelope(message="Quick Match session created!", session=session)


@router.get(
    "/quick-match/active",
    summary="Get my active session",
    description="The session the caller created or joined, or null.",
    operation_id="getActiveQuickMatch",
    responses={
        200: {"description": "Active session or null"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def get_active_quick_match(app: AppDep, auth_token: AuthTokenDep) -> SessionEnvelope:
    return SessionEnvelope(session=await app.get_active_quick_match(auth_token))


@router.get(
    "/quick-match/nearby",
    summary="Find nearby sessions",
    description="Joinable sessions within the radius, nearest first, at most 10.",
    operation_id="findNearbyQuickMatches",
    responses={
        200: {"description": "Nearby sessions"},
        400: {"model": ErrorResponse, "description": "Missing or invalid coordinates"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def find_nearby_quick_matches(
    app: AppDep,
    auth_token: AuthTokenDep,
    latitude: Annotated[float | None, Query(description="Caller latitude")] = None,
    longitude: Annotated[float | None, Query(description="Caller longitude")] = None,
    destination: Annotated[str | None, Query(description="Destination id to match exactly")] = None,
    radius: Annotated[float | None, Query(description="Search radius in meters (max 500)")] = None,
) -> NearbyResponse:
    sessions = await app.find_nearby_quick_matches(auth_token, latitude, longitude, destination, radius)
    return NearbyResponse(count=len(sessions), sessions=sessions)


@router.get(
    "/quick-match/{session_id}",
    summary="Get session",
    description="Session details for its creator and participants.",
    operation_id="getQuickMatch",
    responses={
        200: {"description": "Session details"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Not a member of this session"},
        404: {"model": ErrorResponse, "description": "Session not found or expired"},
    },
)
async def get_quick_match(session_id: UUID, app: AppDep, auth_token: AuthTokenDep) -> SessionEnvelope:
    return SessionEnvelope(session=await app.get_quick_match(auth_token, session_id))


@router.post(
    "/quick-match/{session_id}/join",
    summary="Join session",
    description="Join an open session that still has free spots.",
    operation_id="joinQuickMatch",
    responses={
        200: {"description": "Joined"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        404: {"model": ErrorResponse, "description": "Session not found or expired"},
        409: {"model": ErrorResponse, "description": "Session full, closed, inactive, own session or already joined"},
    },
)
async def join_quick_match(
    session_id: UUID, app: AppDep, auth_token: AuthTokenDep, request: JoinQuickMatchRequest | None = None
) -> SessionEnvelope:
    request = request or JoinQuickMatchRequest()
    session = await app.join_quick_match(auth_token, session_id, request.latitude, request.longitude)
    return SessionEnvelope(message="Joined Quick Match session!", session=session)


@router.post(
    "/quick-match/{session_id}/close",
    summary="Close or reopen session",
    description="Toggle whether new participants may join (creator only).",
    operation_id="closeQuickMatch",
    responses={
        200: {"description": "New closed state"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Only the creator can close the session"},
        404: {"model": ErrorResponse, "description": "Session not found or expired"},
    },
)
async def close_quick_match(session_id: UUID, app: AppDep, auth_token: AuthTokenDep) -> CloseResponse:
    is_closed = await app.close_quick_match(auth_token, session_id)
    return CloseResponse(message="Room closed" if is_closed else "Room reopened", is_closed=is_closed)


@router.delete(
    "/quick-match/{session_id}/leave",
    summary="Leave session",
    description="Leave a session you joined. Creators cannot leave; they cancel.",
    operation_id="leaveQuickMatch",
    responses={
        200: {"description": "Left"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        404: {"model": ErrorResponse, "description": "Session not found or expired"},
        409: {"model": ErrorResponse, "description": "Caller is the creator or not a participant"},
    },
)
async def leave_quick_match(session_id: UUID, app: AppDep, auth_token: AuthTokenDep) -> MessageResponse:
    await app.leave_quick_match(auth_token, session_id)
    return MessageResponse(message="Left Quick Match session")


@router.delete(
    "/quick-match/{session_id}",
    summary="Cancel session",
    description="Delete the session and its chat (creator only).",
    operation_id="cancelQuickMatch",
    responses={
        200: {"description": "Cancelled"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Only the creator can cancel the session"},
        404: {"model": ErrorResponse, "description": "Session not found or expired"},
    },
)
async def cancel_quick_match(session_id: UUID, app: AppDep, auth_token: AuthTokenDep) -> MessageResponse:
    await app.cancel_quick_match(auth_token, session_id)
    return MessageResponse(message="Quick Match session cancelled")

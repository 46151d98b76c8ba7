"""Trusted users: students a user marks as safe to ride with again."""

from uuid import UUID

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from rideshare.core.modules.user.models import UserView
from rideshare.web.deps import AppDep, AuthTokenDep
from rideshare.web.openapi import ErrorResponse

router: APIRouter = APIRouter(tags=["trust"])


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, serialize_by_alias=True)


class TrustedUsersResponse(_CamelModel):
    trusted_users: list[UserView]


class TrustCheckResponse(_CamelModel):
    is_trusted: bool


class MessageResponse(_CamelModel):
    message: str


@router.get(
    "/trust",
    summary="List trusted users",
    operation_id="listTrustedUsers",
    responses={401: {"model": ErrorResponse, "description": "Not authenticated"}},
)
async def list_trusted_users(app: AppDep, auth_token: AuthTokenDep) -> TrustedUsersResponse:
    return TrustedUsersResponse(trusted_users=await app.list_trusted_users(auth_token))


@router.post(
    "/trust/{user_id}",
    summary="Trust a user",
    description="Add a student to the caller's trusted list.",
    operation_id="addTrustedUser",
    responses={
        200: {"description": "Added"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        404: {"model": ErrorResponse, "description": "User not found"},
        409: {"model": ErrorResponse, "description": "Caller targeted themselves or already trusts the user"},
    },
)
async def add_trusted_user(user_id: UUID, app: AppDep, auth_token: AuthTokenDep) -> MessageResponse:
    trusted = await app.trust_user(auth_token, user_id)
    return MessageResponse(message=f"Added {trusted.name} to trusted list")


@router.delete(
    "/trust/{user_id}",
    summary="Stop trusting a user",
    operation_id="removeTrustedUser",
    responses={401: {"model": ErrorResponse, "description": "Not authenticated"}},
)
async def remove_trusted_user(user_id: UUID, app: AppDep, auth_token: AuthTokenDep) -> MessageResponse:
    await app.untrust_user(auth_token, user_id)
    return MessageResponse(message="Removed from trusted list")


@router.get(
    "/trust/check/{user_id}",
    summary="Check trust",
    description="Whether the caller trusts the given user.",
    operation_id="checkTrustedUser",
    responses={401: {"model": ErrorResponse, "description": "Not authenticated"}},
)
async def check_trusted_user(user_id: UUID, app: AppDep, auth_token: AuthTokenDep) -> TrustCheckResponse:
    return TrustCheckResponse(is_trusted=await app.is_user_trusted(auth_token, user_id))

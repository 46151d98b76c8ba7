from fastapi import APIRouter, Response
from pydantic import BaseModel, Field

from rideshare.core.modules.user.models import UserView
from rideshare.web.deps import AUTH_COOKIE, AppDep, AuthTokenDep, ConfigDep
from rideshare.web.openapi import ErrorResponse

router = APIRouter(tags=["auth"])


class RegisterRequest(BaseModel):
    """Student registration request."""

    name: str = Field(..., min_length=1, description="Display name shown to other riders")
    email: str = Field(..., description="Campus email address")
    password: str = Field(..., min_length=1, description="Account password")


class LoginRequest(BaseModel):
    """Authentication request."""

    email: str = Field(..., description="Campus email address")
    password: str = Field(..., description="Password for authentication")


class LoginResponse(BaseModel):
    """Authentication response."""

    token: str = Field(..., description="Authentication token for subsequent requests and the chat socket")


@router.post(
    "/auth/register",
    summary="Register student",
    description="Create an account. Only campus email addresses are accepted.",
    operation_id="register",
    status_code=201,
    responses={
        201: {"description": "Account created"},
        400: {"model": ErrorResponse, "description": "Invalid name, email or password"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
    },
)
async def register(request: RegisterRequest, app: AppDep) -> UserView:
    return await app.register(request.name, request.email, request.password)


@router.post(
    "/auth/login",
    summary="Authenticate user",
    description="Authenticate with email and password to receive an authentication token.",
    operation_id="login",
    responses={
        200: {"description": "Successfully authenticated"},
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
    },
)
async def login(login_data: LoginRequest, app: AppDep, config: ConfigDep, response: Response) -> LoginResponse:
    token = await app.login(login_data.email, login_data.password)

    # Cookie for browser-based clients
    response.set_cookie(
        key=AUTH_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=config.cookie_secure,
        max_age=config.auth_token_ttl_days * 24 * 60 * 60,
    )

    return LoginResponse(token=token)


@router.post(
    "/auth/logout",
    summary="End session",
    description="Invalidate the current authentication token.",
    operation_id="logout",
    status_code=204,
    responses={
        204: {"description": "Successfully logged out"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def logout(app: AppDep, auth_token: AuthTokenDep, response: Response) -> None:
    await app.logout(auth_token)
    response.delete_cookie(AUTH_COOKIE)

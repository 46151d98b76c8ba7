import structlog
from fastapi import Request
from fastapi.responses import JSONResponse, Response

from rideshare.errors import (
    AccessDeniedError,
    ActiveSessionExistsError,
    AuthenticationError,
    ConflictError,
    NotFoundError,
    UserError,
    ValidationError,
)

logger = structlog.get_logger(__name__)


def create_json_error_response(
    status_code: int, message: str, error_type: str | None = None, extra: dict[str, str] | None = None
) -> JSONResponse:
    """Create JSON error response with optional type for machine parsing."""
    content = {"message": message}
    if error_type:
        content["type"] = error_type
    if extra:
        content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def status_code_for(exc: Exception) -> int:
    if isinstance(exc, AuthenticationError):
        return 401
    if isinstance(exc, AccessDeniedError):
        return 403
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ConflictError):
        return 409
    if isinstance(exc, ValidationError):
        return 400
    return 400


async def user_error_handler(_: Request, exc: Exception) -> Response:
    """Handle all UserError subclasses with appropriate status codes."""
    status_code = status_code_for(exc)
    error_type = exc.error_type if isinstance(exc, UserError) else "bad_request"

    extra = None
    if isinstance(exc, ActiveSessionExistsError):
        extra = {"sessionId": str(exc.session_id)}

    return create_json_error_response(status_code=status_code, message=str(exc), error_type=error_type, extra=extra)


async def store_error_handler(_: Request, exc: Exception) -> Response:
    """Database unavailable or failing (503); retrying is left to the client."""
    logger.error("store_unavailable", error=str(exc))
    return create_json_error_response(
        status_code=503, message="The service is temporarily unavailable.", error_type="store_unavailable"
    )


async def general_exception_handler(_: Request, exc: Exception) -> Response:
    """Handle unexpected errors (500)."""
    logger.exception("unexpected_error", error=str(exc))
    return create_json_error_response(
        status_code=500, message="An unexpected error occurred.", error_type="internal_server_error"
    )

from abc import ABC
from uuid import UUID


class UserError(ABC, Exception):
    """Base class for user-related errors.

    All errors that inherit from UserError will have their messages
    displayed to the user. These errors should not contain any
    sensitive information.
    """

    error_type = "bad_request"


class NotFoundError(UserError):
    """Raised when a requested resource is not found."""

    error_type = "not_found"

    def __init__(self, message: str = "Document not found") -> None:
        super().__init__(message)


class SessionExpiredError(NotFoundError):
    """Raised when a Quick Match session exists but its lifetime has passed."""

    error_type = "session_expired"

    def __init__(self, message: str = "Session has expired") -> None:
        super().__init__(message)


class AuthenticationError(UserError):
    """Raised when authentication fails."""

    error_type = "authentication_error"

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message)


class AccessDeniedError(UserError):
    """Raised when a user tries to access a resource they do not have permission for."""

    error_type = "access_denied"


class ValidationError(UserError):
    """Raised when user input fails validation."""

    error_type = "validation_error"


class ConflictError(UserError):
    """Raised when a request conflicts with the current state of a resource."""

    error_type = "conflict"


class ActiveSessionExistsError(ConflictError):
    error_type = "active_session_exists"

    def __init__(self, session_id: UUID) -> None:
        super().__init__("You already have an active Quick Match session")
        self.session_id = session_id


class SessionInactiveError(ConflictError):
    error_type = "session_inactive"

    def __init__(self) -> None:
        super().__init__("Session is no longer active")


class SelfJoinError(ConflictError):
    error_type = "self_join"

    def __init__(self) -> None:
        super().__init__("You cannot join your own session")


class AlreadyJoinedError(ConflictError):
    error_type = "already_joined"

    def __init__(self) -> None:
        super().__init__("Already joined this session")


class SessionClosedError(ConflictError):
    error_type = "session_closed"

    def __init__(self) -> None:
        super().__init__("Room is closed")


class SessionFullError(ConflictError):
    error_type = "session_full"

    def __init__(self) -> None:
        super().__init__("Session is full")


class CreatorCannotLeaveError(ConflictError):
    error_type = "creator_cannot_leave"

    def __init__(self) -> None:
        super().__init__("Creator cannot leave. Use cancel instead.")


class NotParticipantError(ConflictError):
    error_type = "not_participant"

    def __init__(self) -> None:
        super().__init__("You are not in this session")


class EmailAlreadyRegisteredError(ConflictError):
    error_type = "email_already_registered"

    def __init__(self, email: str) -> None:
        super().__init__(f"Email '{email}' is already registered")


class SelfTrustError(ConflictError):
    error_type = "self_trust"

    def __init__(self) -> None:
        super().__init__("You can't add yourself to trusted list")


class AlreadyTrustedError(ConflictError):
    error_type = "already_trusted"

    def __init__(self) -> None:
        super().__init__("User already in your trusted list")

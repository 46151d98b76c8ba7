import secrets
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

import structlog
from pymongo.asynchronous.database import AsyncDatabase

from rideshare.core.core import Service
from rideshare.core.modules.auth.models import AuthSession, AuthToken
from rideshare.core.modules.user.models import User
from rideshare.errors import AuthenticationError, NotFoundError
from rideshare.utils import as_utc, now

logger = structlog.get_logger(__name__)

AUTH_CACHE_SIZE = 1024


class AuthService(Service):
    """Issues and verifies bearer tokens; the identity provider for every route and socket."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("auth_sessions")
        self._authenticated_users: dict[AuthToken, tuple[User, datetime]] = {}  # token -> (user, token expiry)

    async def on_start(self) -> None:
        """Create indexes on startup."""
        await self._collection.create_index([("auth_token", 1)], unique=True)
        await self._collection.create_index([("user_id", 1)])
        ttl_seconds = self.core.config.auth_token_ttl_days * 24 * 60 * 60
        await self._collection.create_index([("created_at", 1)], expireAfterSeconds=ttl_seconds)

    async def login(self, email: str, password: str) -> AuthToken:
        user = await self.core.services.user.verify_password(email, password)
        if user is None:
            raise AuthenticationError("Invalid email or password")
        return await self.create_token(user.id)

    async def create_token(self, user_id: UUID) -> AuthToken:
        auth_token = AuthToken(secrets.token_urlsafe(32))
        await self._collection.insert_one(AuthSession(user_id=user_id, auth_token=auth_token).to_mongo())
        logger.debug("auth_token_issued", user_id=user_id)
        return auth_token

    async def verify(self, auth_token: AuthToken) -> User:
        """Resolve a bearer token to its user or raise AuthenticationError.

        Tokens past their lifetime are refused even while the TTL monitor has
        not removed them yet; cached entries expire the same way.
        """
        current = now()
        cached = self._authenticated_users.get(auth_token)
        if cached is not None:
            user, expires_at = cached
            if expires_at > current:
                return user
            del self._authenticated_users[auth_token]

        auth_session = AuthSession.from_mongo(await self._collection.find_one({"auth_token": auth_token}))
        if auth_session is None:
            raise AuthenticationError("Invalid or expired token")
        expires_at = as_utc(auth_session.created_at) + self._token_lifetime
        if expires_at <= current:
            raise AuthenticationError("Invalid or expired token")

        try:
            user = await self.core.services.user.get_user(auth_session.user_id)
        except NotFoundError as e:
            raise AuthenticationError("User not found. Please complete registration.") from e

        self._remember(auth_token, user, expires_at)
        return user

    async def is_auth_token_valid(self, auth_token: AuthToken) -> bool:
        try:
            await self.verify(auth_token)
        except AuthenticationError:
            return False
        return True

    async def invalidate(self, auth_token: AuthToken) -> None:
        """Invalidate a token by removing it from the database."""
        self._authenticated_users.pop(auth_token, None)
        await self._collection.delete_one({"auth_token": auth_token})

    @property
    def _token_lifetime(self) -> timedelta:
        return timedelta(days=self.core.config.auth_token_ttl_days)

    def _remember(self, auth_token: AuthToken, user: User, expires_at: datetime) -> None:
        """Cache a verified token, evicting the oldest entry once full."""
        if len(self._authenticated_users) >= AUTH_CACHE_SIZE:
            del self._authenticated_users[next(iter(self._authenticated_users))]
        self._authenticated_users[auth_token] = (user, expires_at)

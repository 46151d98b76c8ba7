from typing import Any
from uuid import UUID

import bcrypt
import structlog
from pymongo.asynchronous.database import AsyncDatabase

from rideshare.core.core import Service
from rideshare.core.modules.user.models import User
from rideshare.core.modules.user.validators import normalize_email, validate_name, validate_password
from rideshare.errors import AlreadyTrustedError, EmailAlreadyRegisteredError, NotFoundError, SelfTrustError

logger = structlog.get_logger(__name__)


class UserService(Service):
    """Manages student accounts."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("users")

    async def on_start(self) -> None:
        """Create indexes on startup."""
        await self._collection.create_index([("email", 1)], unique=True)

    async def get_user(self, user_id: UUID) -> User:
        """Get user by ID."""
        user = User.from_mongo(await self._collection.find_one({"_id": user_id}))
        if user is None:
            raise NotFoundError(f"User '{user_id}' not found")
        return user

    async def find_user_by_email(self, email: str) -> User | None:
        return User.from_mongo(await self._collection.find_one({"email": email.strip().lower()}))

    async def create_user(self, name: str, email: str, password: str) -> User:
        """Register a student with a hashed password."""
        email = normalize_email(email, self.core.config.allowed_email_domain)
        name = validate_name(name)
        validate_password(password)

        if await self.find_user_by_email(email) is not None:
            raise EmailAlreadyRegisteredError(email)

        password_hash = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
        user = User(name=name, email=email, password_hash=password_hash)
        await self._collection.insert_one(user.to_mongo())
        logger.info("user_registered", user_id=user.id)
        return user

    async def verify_password(self, email: str, password: str) -> User | None:
        """Return the user when the password matches its stored hash."""
        user = await self.find_user_by_email(email)
        if user is None:
            return None
        if not bcrypt.checkpw(password.encode("utf-8"), user.password_hash.encode("utf-8")):
            return None
        return user

    # === Trusted users ===

    async def add_trust(self, user_id: UUID, target_id: UUID) -> User:
        """Add target to the user's trusted list and return the target."""
        if user_id == target_id:
            raise SelfTrustError
        target = User.from_mongo(await self._collection.find_one({"_id": target_id}))
        if target is None:
            raise NotFoundError("User not found")

        if target_id in (await self.get_user(user_id)).trusted_users:
            raise AlreadyTrustedError
        await self._collection.update_one({"_id": user_id}, {"$addToSet": {"trusted_users": target_id}})
        logger.info("user_trusted", user_id=user_id, target_id=target_id)
        return target

    async def remove_trust(self, user_id: UUID, target_id: UUID) -> None:
        """Drop target from the trusted list; removing an untrusted user is a no-op."""
        await self._collection.update_one({"_id": user_id}, {"$pull": {"trusted_users": target_id}})

    async def list_trusted(self, user_id: UUID) -> list[User]:
        user = await self.get_user(user_id)
        if not user.trusted_users:
            return []
        return await User.list_cursor(self._collection.find({"_id": {"$in": user.trusted_users}}))

    async def is_trusted(self, user_id: UUID, target_id: UUID) -> bool:
        return target_id in (await self.get_user(user_id)).trusted_users

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from rideshare.core.db import MongoModel
from rideshare.utils import now


class User(MongoModel):
    """Student account with credentials."""

    name: str  # Real display name, shown in ride chat and Quick Match
    email: str  # Lowercased campus address, unique
    password_hash: str  # bcrypt hash
    phone: str = ""
    hostel: str = ""
    trusted_users: list[UUID] = Field(default_factory=list)  # Students this user rides with again
    created_at: datetime = Field(default_factory=now)


class UserView(BaseModel):
    """User account information (API representation)."""

    id: UUID = Field(..., description="User ID")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Campus email address")

    @classmethod
    def from_domain(cls, user: User) -> "UserView":
        """Create view model from domain model."""
        return cls(id=user.id, name=user.name, email=user.email)

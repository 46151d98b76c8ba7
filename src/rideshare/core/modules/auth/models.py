"""Bearer token models."""

from datetime import datetime
from typing import NewType
from uuid import UUID

from pydantic import Field

from rideshare.core.db import MongoModel
from rideshare.utils import now

AuthToken = NewType("AuthToken", str)


class AuthSession(MongoModel):
    """Issued bearer token.

    Indexed on auth_token - unique, user_id, created_at (TTL from config).
    """

    user_id: UUID
    auth_token: str
    created_at: datetime = Field(default_factory=now)

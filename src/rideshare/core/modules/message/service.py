from typing import Any
from uuid import UUID

import structlog
from pymongo.asynchronous.database import AsyncDatabase

from rideshare.core.core import Service
from rideshare.core.modules.message.models import QUICK_MATCH_MESSAGE_MAX_LENGTH, QuickMatchMessage, RideMessage
from rideshare.core.modules.message.store import QuickMatchMessageStore, RideMessageStore
from rideshare.errors import ValidationError

logger = structlog.get_logger(__name__)


def clean_content(content: str, max_length: int | None = None) -> str:
    """Trim whitespace and optionally cut to max_length; empty content is rejected."""
    if not isinstance(content, str):
        raise ValidationError("Message content must be a string")
    content = content.strip()
    if not content:
        raise ValidationError("Message cannot be empty")
    if max_length is not None:
        content = content[:max_length].rstrip()
    return content


class MessageService(Service):
    """Persists ride chat and Quick Match chat messages."""

    def __init__(
        self,
        database: AsyncDatabase[dict[str, Any]],
        rides: RideMessageStore | None = None,
        quick_match: QuickMatchMessageStore | None = None,
    ) -> None:
        super().__init__(database)
        self._ride_store = rides
        self._quick_match_store = quick_match

    @property
    def rides(self) -> RideMessageStore:
        if self._ride_store is None:
            self._ride_store = RideMessageStore(self.database.get_collection("messages"))
        return self._ride_store

    @property
    def quick_match(self) -> QuickMatchMessageStore:
        # Built lazily: the TTL comes from config, which is only reachable once core is set
        if self._quick_match_store is None:
            self._quick_match_store = QuickMatchMessageStore(
                self.database.get_collection("quick_match_messages"),
                self.core.config.quick_match_message_ttl_seconds,
            )
        return self._quick_match_store

    async def on_start(self) -> None:
        """Create indexes on startup."""
        await self.rides.ensure_indexes()
        await self.quick_match.ensure_indexes()

    async def create_ride_message(self, ride_id: UUID, sender_id: UUID, sender_name: str, content: str) -> RideMessage:
        message = RideMessage(ride_id=ride_id, sender_id=sender_id, sender_name=sender_name, content=clean_content(content))
        await self.rides.insert(message)
        return message

    async def get_recent_ride_messages(self, ride_id: UUID, limit: int) -> list[RideMessage]:
        return await self.rides.recent(ride_id, limit)

    async def create_quick_match_message(
        self, session_id: UUID, sender_id: UUID, sender_nickname: str, content: str
    ) -> QuickMatchMessage:
        """Store a Quick Match message, truncated to the room's length limit."""
        message = QuickMatchMessage(
            session_id=session_id,
            sender_id=sender_id,
            sender_nickname=sender_nickname,
            content=clean_content(content, QUICK_MATCH_MESSAGE_MAX_LENGTH),
        )
        await self.quick_match.insert(message)
        return message

    async def get_recent_quick_match_messages(self, session_id: UUID, limit: int) -> list[QuickMatchMessage]:
        return await self.quick_match.recent(session_id, limit)

    async def delete_quick_match_messages(self, session_id: UUID) -> int:
        """Delete every message of a session and return how many were removed."""
        deleted = await self.quick_match.delete_by_session(session_id)
        logger.debug("qm_messages_deleted", session_id=session_id, count=deleted)
        return deleted

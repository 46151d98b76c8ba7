"""MongoDB persistence for chat messages. Messages are append-only."""

from typing import Any
from uuid import UUID

from pymongo import ASCENDING, DESCENDING
from pymongo.asynchronous.collection import AsyncCollection

from rideshare.core.modules.message.models import QuickMatchMessage, RideMessage


class RideMessageStore:
    def __init__(self, collection: AsyncCollection[dict[str, Any]]) -> None:
        self._collection = collection

    async def ensure_indexes(self) -> None:
        await self._collection.create_index([("ride_id", ASCENDING), ("created_at", ASCENDING)])

    async def insert(self, message: RideMessage) -> None:
        await self._collection.insert_one(message.to_mongo())

    async def recent(self, ride_id: UUID, limit: int) -> list[RideMessage]:
        """Most recent messages, oldest first."""
        cursor = self._collection.find({"ride_id": ride_id}).sort("created_at", DESCENDING).limit(limit)
        messages = await RideMessage.list_cursor(cursor)
        return messages[::-1]


class QuickMatchMessageStore:
    def __init__(self, collection: AsyncCollection[dict[str, Any]], ttl_seconds: int) -> None:
        self._collection = collection
        self._ttl_seconds = ttl_seconds

    async def ensure_indexes(self) -> None:
        await self._collection.create_index([("session_id", ASCENDING), ("created_at", ASCENDING)])
        # TTL index: each message disappears ttl_seconds after it was sent
        await self._collection.create_index(
            [("created_at", ASCENDING)], expireAfterSeconds=self._ttl_seconds, name="created_at_ttl"
        )

    async def insert(self, message: QuickMatchMessage) -> None:
        await self._collection.insert_one(message.to_mongo())

    async def recent(self, session_id: UUID, limit: int) -> list[QuickMatchMessage]:
        """Most recent messages, oldest first."""
        cursor = self._collection.find({"session_id": session_id}).sort("created_at", DESCENDING).limit(limit)
        messages = await QuickMatchMessage.list_cursor(cursor)
        return messages[::-1]

    async def delete_by_session(self, session_id: UUID) -> int:
        result = await self._collection.delete_many({"session_id": session_id})
        return result.deleted_count

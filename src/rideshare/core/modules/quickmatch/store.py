"""MongoDB persistence for Quick Match sessions.

Query and update documents are built by pure functions so they can be tested
without a database. Every mutation is a single-document atomic update: the
participants array lives inside the session document and is never changed by
a separate read-modify-write.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from pymongo import ASCENDING, GEOSPHERE, ReturnDocument
from pymongo.asynchronous.collection import AsyncCollection

from rideshare.core.modules.quickmatch.models import (
    ACTIVE_STATUSES,
    NEARBY_RESULT_LIMIT,
    Participant,
    QuickMatchSession,
    SessionStatus,
)

logger = structlog.get_logger(__name__)

COLLECTION_NAME = "quick_match_sessions"


def active_filter(current: datetime) -> dict[str, Any]:
    """Sessions that are still searching or matched and have not expired."""
    return {
        "status": {"$in": [str(s) for s in ACTIVE_STATUSES]},
        "expires_at": {"$gt": current},
    }


def membership_filter(user_id: UUID) -> dict[str, Any]:
    """Sessions the user created or joined."""
    return {"$or": [{"creator_id": user_id}, {"participants.user_id": user_id}]}


def build_nearby_query(
    user_id: UUID, latitude: float, longitude: float, radius: float, current: datetime, destination_id: str | None = None
) -> dict[str, Any]:
    """Build the proximity query for discovery.

    $nearSphere sorts by distance, so no explicit sort is needed.
    """
    query: dict[str, Any] = {
        **active_filter(current),
        "creator_id": {"$ne": user_id},
        "participants.user_id": {"$ne": user_id},
        "location": {
            "$nearSphere": {
                "$geometry": {"type": "Point", "coordinates": [longitude, latitude]},
                "$maxDistance": radius,
            }
        },
    }
    if destination_id:
        query["destination.id"] = destination_id
    return query


def build_join_filter(session_id: UUID, user_id: UUID, current: datetime) -> dict[str, Any]:
    """Condition under which a join may be applied.

    Re-checks every join guard inside the update so two joins racing for the
    last seat cannot both succeed.
    """
    return {
        "_id": session_id,
        **active_filter(current),
        "is_closed": False,
        "creator_id": {"$ne": user_id},
        "participants.user_id": {"$ne": user_id},
        "$expr": {"$lt": [{"$add": [{"$size": "$participants"}, 1]}, "$max_participants"]},
    }


def build_join_update(participant: Participant, current: datetime) -> dict[str, Any]:
    return {
        "$push": {"participants": participant.model_dump()},
        "$set": {"status": str(SessionStatus.MATCHED), "updated_at": current},
    }


def build_leave_pipeline(user_id: UUID, current: datetime) -> list[dict[str, Any]]:
    """Remove the participant and recompute status in one atomic update."""
    return [
        {
            "$set": {
                "participants": {
                    "$filter": {"input": "$participants", "cond": {"$ne": ["$$this.user_id", user_id]}},
                }
            }
        },
        {
            "$set": {
                "status": {
                    "$cond": [
                        {"$gt": [{"$size": "$participants"}, 0]},
                        str(SessionStatus.MATCHED),
                        str(SessionStatus.SEARCHING),
                    ]
                },
                "updated_at": current,
            }
        },
    ]


def build_toggle_closed_pipeline(current: datetime) -> list[dict[str, Any]]:
    return [{"$set": {"is_closed": {"$not": ["$is_closed"]}, "updated_at": current}}]


class SessionStore:
    """Quick Match session collection with geospatial, status and TTL indexes."""

    def __init__(self, collection: AsyncCollection[dict[str, Any]]) -> None:
        self._collection = collection

    async def ensure_indexes(self) -> None:
        await self._collection.create_index([("location", GEOSPHERE)])
        await self._collection.create_index([("status", ASCENDING), ("expires_at", ASCENDING)])
        await self._collection.create_index([("creator_id", ASCENDING)])
        await self._collection.create_index([("participants.user_id", ASCENDING)])
        # TTL index: MongoDB deletes the document once expires_at is reached
        await self._collection.create_index([("expires_at", ASCENDING)], expireAfterSeconds=0, name="expires_at_ttl")
        logger.debug("quick_match_session_indexes_ready", collection=self._collection.name)

    async def insert(self, session: QuickMatchSession) -> None:
        await self._collection.insert_one(session.to_mongo())

    async def get(self, session_id: UUID) -> QuickMatchSession | None:
        """Load a session regardless of status or expiry; callers apply lazy expiry."""
        return QuickMatchSession.from_mongo(await self._collection.find_one({"_id": session_id}))

    async def find_active_for_user(self, user_id: UUID, current: datetime) -> QuickMatchSession | None:
        query = {**membership_filter(user_id), **active_filter(current)}
        return QuickMatchSession.from_mongo(await self._collection.find_one(query))

    async def find_nearby(
        self,
        user_id: UUID,
        latitude: float,
        longitude: float,
        radius: float,
        current: datetime,
        destination_id: str | None = None,
        limit: int = NEARBY_RESULT_LIMIT,
    ) -> list[QuickMatchSession]:
        query = build_nearby_query(user_id, latitude, longitude, radius, current, destination_id)
        return await QuickMatchSession.list_cursor(self._collection.find(query).limit(limit))

    async def add_participant(
        self, session_id: UUID, participant: Participant, current: datetime
    ) -> QuickMatchSession | None:
        """Append a participant if every join condition still holds; None otherwise."""
        doc = await self._collection.find_one_and_update(
            build_join_filter(session_id, participant.user_id, current),
            build_join_update(participant, current),
            return_document=ReturnDocument.AFTER,
        )
        return QuickMatchSession.from_mongo(doc)

    async def remove_participant(self, session_id: UUID, user_id: UUID, current: datetime) -> QuickMatchSession | None:
        doc = await self._collection.find_one_and_update(
            {"_id": session_id, "participants.user_id": user_id},
            build_leave_pipeline(user_id, current),
            return_document=ReturnDocument.AFTER,
        )
        return QuickMatchSession.from_mongo(doc)

    async def toggle_closed(self, session_id: UUID, creator_id: UUID, current: datetime) -> QuickMatchSession | None:
        doc = await self._collection.find_one_and_update(
            {"_id": session_id, "creator_id": creator_id},
            build_toggle_closed_pipeline(current),
            return_document=ReturnDocument.AFTER,
        )
        return QuickMatchSession.from_mongo(doc)

    async def delete(self, session_id: UUID) -> bool:
        result = await self._collection.delete_one({"_id": session_id})
        return result.deleted_count > 0

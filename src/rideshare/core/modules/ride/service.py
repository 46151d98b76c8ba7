from typing import Any
from uuid import UUID

from pymongo.asynchronous.database import AsyncDatabase

from rideshare.core.core import Service
from rideshare.core.modules.ride.models import Ride
from rideshare.errors import NotFoundError


class RideService(Service):
    """Read access to scheduled rides."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("rides")

    async def get_ride(self, ride_id: UUID) -> Ride:
        ride = Ride.from_mongo(await self._collection.find_one({"_id": ride_id}))
        if ride is None:
            raise NotFoundError("Ride not found")
        return ride

    async def get_room_members(self, ride_id: UUID) -> dict[UUID, str]:
        """Participant names by user id; the ride chat audience."""
        return (await self.get_ride(ride_id)).members

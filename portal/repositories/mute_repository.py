from typing import List, Set

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

from portal.models.channel import ChannelMuteDocument
from portal.utils.clock import now_ms


class MuteRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["muted_channels"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("user_id", ASCENDING), ("channel_id", ASCENDING)], unique=True)

    async def is_muted(self, user_id: str, channel_id: ObjectId) -> bool:
        return await self.collection.find_one({"user_id": user_id, "channel_id": channel_id}) is not None

    async def mute(self, user_id: str, channel_id: ObjectId) -> bool:
        """Returns True when a new mute row was written, False if one already existed."""
        result = await self.collection.update_one(
            {"user_id": user_id, "channel_id": channel_id},
            {"$setOnInsert": {"muted_at": now_ms()}},
            upsert=True,
        )
        return result.upserted_id is not None

    async def unmute(self, user_id: str, channel_id: ObjectId) -> bool:
        result = await self.collection.delete_many({"user_id": user_id, "channel_id": channel_id})
        return (result.deleted_count or 0) > 0

    async def muted_channel_ids(self, user_id: str) -> Set[ObjectId]:
        cur = self.collection.find({"user_id": user_id}, {"channel_id": 1})
        return {doc["channel_id"] async for doc in cur}

    async def list_for_user(self, user_id: str) -> List[ChannelMuteDocument]:
        cur = self.collection.find({"user_id": user_id}).sort("muted_at", ASCENDING)
        return await cur.to_list(length=None)

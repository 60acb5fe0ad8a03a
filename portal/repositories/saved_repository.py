from typing import Iterable, List, Set

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from portal.models.message import SavedMessageDocument
from portal.utils.clock import now_ms


class SavedMessageRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db.get_collection("saved_messages")

    async def ensure_indexes(self) -> None:
        await self._collection.create_index([("user_id", ASCENDING), ("message_id", ASCENDING)], unique=True)
        await self._collection.create_index([("user_id", ASCENDING), ("saved_at", DESCENDING)])
        await self._collection.create_index([("message_id", ASCENDING)])

    async def save(self, user_id: str, message_id: ObjectId) -> bool:
        result = await self._collection.update_one(
            {"user_id": user_id, "message_id": message_id},
            {"$setOnInsert": {"saved_at": now_ms()}},
            upsert=True,
        )
        return result.upserted_id is not None

    async def unsave(self, user_id: str, message_id: ObjectId) -> bool:
        result = await self._collection.delete_one({"user_id": user_id, "message_id": message_id})
        return result.deleted_count > 0

    async def saved_ids(self, user_id: str, message_ids: Iterable[ObjectId]) -> Set[ObjectId]:
        ids = list(message_ids)
        if not ids:
            return set()
        cur = self._collection.find({"user_id": user_id, "message_id": {"$in": ids}}, {"message_id": 1})
        return {doc["message_id"] async for doc in cur}

    async def list_for_user(self, user_id: str, limit: int) -> List[SavedMessageDocument]:
        cur = self._collection.find({"user_id": user_id}).sort([("saved_at", DESCENDING), ("_id", DESCENDING)]).limit(limit)
        return await cur.to_list(length=limit)

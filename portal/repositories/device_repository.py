from typing import Any, Dict, Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

from portal.models.device import DeviceDocument
from portal.utils.clock import now_ms


class DeviceRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["devices"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("user_id", ASCENDING), ("platform", ASCENDING)])

    async def register(self, user_id: str, platform: str, token: str) -> DeviceDocument:
        await self.collection.update_one(
            {"user_id": user_id, "platform": platform, "token": token},
            {"$set": {"last_seen_at": now_ms()}},
            upsert=True,
        )
        return {"user_id": user_id, "platform": platform, "token": token}

    async def unregister(self, user_id: str, token: str) -> bool:
        result = await self.collection.delete_many({"user_id": user_id, "token": token})
        return (result.deleted_count or 0) > 0

    async def get_tokens(self, user_ids: Iterable[str], platform: Optional[str] = None) -> List[DeviceDocument]:
        query: Dict[str, Any] = {"user_id": {"$in": list(user_ids)}}
        if platform:
            query["platform"] = platform
        cur = self.collection.find(query)
        return await cur.to_list(length=500)

from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

from portal.models.user import UserDocument
from portal.utils.clock import now_ms


class UserRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db.get_collection("users")

    async def ensure_indexes(self) -> None:
        await self._collection.create_index([("external_id", ASCENDING)], unique=True)
        await self._collection.create_index([("email", ASCENDING)])

    async def upsert_profile(self, external_id: str, email: Optional[str], first_name: Optional[str], last_name: Optional[str], image_url: Optional[str]) -> UserDocument:
        await self._collection.update_one(
            {"external_id": external_id},
            {
                "$set": {
                    "email": email or "",
                    "first_name": first_name,
                    "last_name": last_name,
                    "image_url": image_url,
                    "updated_at": now_ms(),
                },
            },
            upsert=True,
        )
        return await self._collection.find_one({"external_id": external_id})

    async def get_by_external_id(self, external_id: str) -> Optional[UserDocument]:
        return await self._collection.find_one({"external_id": external_id})

    async def get_many_by_external_id(self, external_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        ids: List[str] = list(set(external_ids))
        if not ids:
            return {}
        cur = self._collection.find({"external_id": {"$in": ids}})
        return {doc["external_id"]: doc async for doc in cur}

    async def set_primary_workspace(self, external_id: str, organization_id: ObjectId) -> bool:
        result = await self._collection.update_one(
            {"external_id": external_id},
            {"$set": {"primary_workspace_id": organization_id}},
        )
        return bool(result.matched_count)

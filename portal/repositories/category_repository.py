from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from portal.models.channel import ChannelCategoryDocument
from portal.utils.clock import now_ms


class CategoryRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["channel_categories"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("organization_id", ASCENDING), ("order", ASCENDING)])

    async def get(self, category_id: ObjectId) -> Optional[ChannelCategoryDocument]:
        return await self.collection.find_one({"_id": category_id})

    async def list_for_organization(self, organization_id: ObjectId) -> List[ChannelCategoryDocument]:
        cur = self.collection.find({"organization_id": organization_id}).sort([("order", ASCENDING), ("_id", ASCENDING)])
        return await cur.to_list(length=None)

    async def max_order(self, organization_id: ObjectId) -> int:
        last = await self.collection.find_one({"organization_id": organization_id}, sort=[("order", DESCENDING)])
        return last["order"] if last else -1

    async def create(self, organization_id: ObjectId, name: str) -> ChannelCategoryDocument:
        doc: ChannelCategoryDocument = {
            "organization_id": organization_id,
            "name": name,
            "order": await self.max_order(organization_id) + 1,
            "created_at": now_ms(),
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    async def update_fields(self, category_id: ObjectId, fields: Dict[str, Any]) -> None:
        if not fields:
            return
        await self.collection.update_one({"_id": category_id}, {"$set": fields})

    async def set_order(self, category_id: ObjectId, organization_id: ObjectId, order: int) -> bool:
        result = await self.collection.update_one(
            {"_id": category_id, "organization_id": organization_id},
            {"$set": {"order": order}},
        )
        return bool(result.matched_count)

    async def delete(self, category_id: ObjectId) -> bool:
        result = await self.collection.delete_one({"_id": category_id})
        return result.deleted_count > 0

from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from portal.models.forum import ForumPostDocument
from portal.utils.clock import now_ms


class ForumPostRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["forum_posts"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("channel_id", ASCENDING), ("last_activity_at", DESCENDING)])
        await self.collection.create_index([("channel_id", ASCENDING), ("status", ASCENDING)])

    async def create(self, channel_id: ObjectId, title: str, content: str, author_id: str) -> ForumPostDocument:
        now = now_ms()
        doc: ForumPostDocument = {
            "channel_id": channel_id,
            "title": title,
            "content": content,
            "author_id": author_id,
            "status": "open",
            "is_pinned": False,
            "solved_comment_id": None,
            "created_at": now,
            "last_activity_at": now,
            "comment_count": 0,
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    async def get(self, post_id: ObjectId) -> Optional[ForumPostDocument]:
        return await self.collection.find_one({"_id": post_id})

    async def list_for_channel(self, channel_id: ObjectId, status: Optional[str] = None, limit: int = 50) -> List[ForumPostDocument]:
        query: Dict[str, Any] = {"channel_id": channel_id}
        if status:
            query["status"] = status
        # pinned posts first, then most recently active
        cur = self.collection.find(query).sort([("is_pinned", DESCENDING), ("last_activity_at", DESCENDING), ("_id", DESCENDING)]).limit(limit)
        return await cur.to_list(length=limit)

    async def update_fields(self, post_id: ObjectId, fields: Dict[str, Any]) -> None:
        if not fields:
            return
        await self.collection.update_one({"_id": post_id}, {"$set": fields})

    async def record_comment(self, post_id: ObjectId, at: int) -> None:
        await self.collection.update_one(
            {"_id": post_id},
            {"$inc": {"comment_count": 1}, "$set": {"last_activity_at": at}},
        )

    async def delete(self, post_id: ObjectId) -> bool:
        result = await self.collection.delete_one({"_id": post_id})
        return result.deleted_count > 0

from typing import Any, Dict, Iterable, List, Optional, Set

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from portal.models.channel import ChannelDocument, ChannelMemberDocument
from portal.repositories.message_repository import MessageRepository
from portal.utils.clock import now_ms


# Collections holding per-channel rows, removed before the channel itself.
CHANNEL_DEPENDENTS = (
    "channel_members",
    "messages",
    "typing_indicators",
    "muted_channels",
    "channel_read_status",
    "shared_channel_invitations",
    "shared_channel_members",
    "forum_posts",
)


class ChannelRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["channels"]

    @property
    def members(self):
        return self._db["channel_members"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("organization_id", ASCENDING)])
        await self.collection.create_index([("category_id", ASCENDING), ("order", ASCENDING)])
        await self.members.create_index([("channel_id", ASCENDING), ("user_id", ASCENDING)], unique=True)
        await self.members.create_index([("user_id", ASCENDING)])
        for name in CHANNEL_DEPENDENTS:
            if name != "channel_members":
                await self._db[name].create_index([("channel_id", ASCENDING)])

    async def get(self, channel_id: ObjectId) -> Optional[ChannelDocument]:
        return await self.collection.find_one({"_id": channel_id})

    async def list_for_organization(self, organization_id: ObjectId, include_deleting: bool = False) -> List[ChannelDocument]:
        query: Dict[str, Any] = {"organization_id": organization_id}
        if not include_deleting:
            query["deleting"] = {"$ne": True}
        cur = self.collection.find(query)
        return await cur.to_list(length=None)

    async def list_for_category(self, category_id: ObjectId) -> List[ChannelDocument]:
        cur = self.collection.find({"category_id": category_id}).sort([("order", ASCENDING), ("_id", ASCENDING)])
        return await cur.to_list(length=None)

    async def count_in_category(self, category_id: ObjectId) -> int:
        return await self.collection.count_documents({"category_id": category_id})

    async def max_order(self, category_id: ObjectId) -> int:
        last = await self.collection.find_one({"category_id": category_id}, sort=[("order", DESCENDING)])
        return last["order"] if last else -1

    async def create(self, doc: ChannelDocument) -> ChannelDocument:
        doc = dict(doc)
        doc.setdefault("created_at", now_ms())
        doc["order"] = await self.max_order(doc["category_id"]) + 1
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    async def update_fields(self, channel_id: ObjectId, fields: Dict[str, Any]) -> None:
        if not fields:
            return
        await self.collection.update_one({"_id": channel_id}, {"$set": fields})

    async def place(self, channel_id: ObjectId, organization_id: ObjectId, category_id: ObjectId, order: int) -> bool:
        result = await self.collection.update_one(
            {"_id": channel_id, "organization_id": organization_id},
            {"$set": {"category_id": category_id, "order": order}},
        )
        return bool(result.matched_count)

    async def set_order(self, channel_id: ObjectId, order: int) -> None:
        await self.collection.update_one({"_id": channel_id}, {"$set": {"order": order}})

    # --- private channel membership ---

    async def member_ids(self, channel_id: ObjectId) -> Set[str]:
        cur = self.members.find({"channel_id": channel_id}, {"user_id": 1})
        return {doc["user_id"] async for doc in cur}

    async def list_members(self, channel_id: ObjectId) -> List[ChannelMemberDocument]:
        cur = self.members.find({"channel_id": channel_id}).sort("added_at", ASCENDING)
        return await cur.to_list(length=None)

    async def is_member(self, channel_id: ObjectId, user_id: str) -> bool:
        return await self.members.find_one({"channel_id": channel_id, "user_id": user_id}) is not None

    async def channels_with_member(self, user_id: str, channel_ids: Iterable[ObjectId]) -> Set[ObjectId]:
        ids = list(channel_ids)
        if not ids:
            return set()
        cur = self.members.find({"user_id": user_id, "channel_id": {"$in": ids}}, {"channel_id": 1})
        return {doc["channel_id"] async for doc in cur}

    async def add_members(self, channel_id: ObjectId, user_ids: Iterable[str], added_by: str) -> int:
        added = 0
        now = now_ms()
        for user_id in user_ids:
            result = await self.members.update_one(
                {"channel_id": channel_id, "user_id": user_id},
                {"$setOnInsert": {"added_at": now, "added_by": added_by}},
                upsert=True,
            )
            if result.upserted_id is not None:
                added += 1
        return added

    async def remove_members(self, channel_id: ObjectId, user_ids: Iterable[str]) -> int:
        ids = list(user_ids)
        if not ids:
            return 0
        result = await self.members.delete_many({"channel_id": channel_id, "user_id": {"$in": ids}})
        return result.deleted_count or 0

    async def clear_members(self, channel_id: ObjectId) -> int:
        result = await self.members.delete_many({"channel_id": channel_id})
        return result.deleted_count or 0

    # --- deletion ---

    async def mark_deleting(self, channel_id: ObjectId) -> None:
        await self.collection.update_one({"_id": channel_id}, {"$set": {"deleting": True}})

    async def delete_dependents(self, channel_id: ObjectId) -> Dict[str, int]:
        # message-keyed rows go first, they are unreachable once messages are gone
        messages = MessageRepository(self._db)
        removed = await messages.delete_dependents(await messages.ids_matching({"channel_id": channel_id}))
        post_ids = [doc["_id"] async for doc in self._db["forum_posts"].find({"channel_id": channel_id}, {"_id": 1})]
        removed["forum_comments"] = await messages.delete_forum_comments(post_ids)
        for name in CHANNEL_DEPENDENTS:
            result = await self._db[name].delete_many({"channel_id": channel_id})
            removed[name] = result.deleted_count or 0
        return removed

    async def delete(self, channel_id: ObjectId) -> bool:
        result = await self.collection.delete_one({"_id": channel_id})
        return result.deleted_count > 0

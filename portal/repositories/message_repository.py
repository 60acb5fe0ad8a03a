from typing import Any, Dict, Iterable, List, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from portal.models.message import MessageDocument, TypingIndicatorDocument
from portal.utils.clock import now_ms


# Per-user rows keyed by message_id, removed together with their message.
MESSAGE_DEPENDENTS = ("mention_read_status", "saved_messages")


def _parse_cursor(cursor: Optional[str]) -> Optional[Tuple[int, ObjectId]]:
    # cursor format: created_at_ms:oid
    if not cursor:
        return None
    try:
        ts_str, oid_hex = cursor.split(":", 1)
        return int(ts_str), ObjectId(oid_hex)
    except (ValueError, InvalidId):
        return None


class MessageRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["messages"]

    @property
    def typing(self):
        return self._db["typing_indicators"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("channel_id", ASCENDING), ("created_at", DESCENDING)])
        await self.collection.create_index([("conversation_id", ASCENDING), ("created_at", DESCENDING)])
        await self.collection.create_index([("forum_post_id", ASCENDING), ("created_at", DESCENDING)])
        await self.typing.create_index([("channel_id", ASCENDING), ("user_id", ASCENDING)])

    async def save_message(
        self,
        user_id: str,
        content: str,
        channel_id: Optional[ObjectId] = None,
        conversation_id: Optional[ObjectId] = None,
        forum_post_id: Optional[ObjectId] = None,
        mentions: Optional[List[str]] = None,
        parent_message_id: Optional[ObjectId] = None,
        created_at: Optional[int] = None,
    ) -> MessageDocument:
        doc: MessageDocument = {
            "channel_id": channel_id,
            "conversation_id": conversation_id,
            "forum_post_id": forum_post_id,
            "user_id": user_id,
            "content": content,
            "created_at": created_at if created_at is not None else now_ms(),
            "mentions": list(mentions or []),
            "parent_message_id": parent_message_id,
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    async def get(self, message_id: ObjectId) -> Optional[MessageDocument]:
        return await self.collection.find_one({"_id": message_id})

    async def update_content(self, message_id: ObjectId, content: str) -> None:
        await self.collection.update_one(
            {"_id": message_id},
            {"$set": {"content": content, "edited_at": now_ms()}},
        )

    async def delete(self, message_id: ObjectId) -> bool:
        await self.delete_dependents([message_id])
        result = await self.collection.delete_one({"_id": message_id})
        return result.deleted_count > 0

    async def delete_dependents(self, message_ids: Iterable[ObjectId]) -> Dict[str, int]:
        ids = list(message_ids)
        removed: Dict[str, int] = {}
        for name in MESSAGE_DEPENDENTS:
            if not ids:
                removed[name] = 0
                continue
            result = await self._db[name].delete_many({"message_id": {"$in": ids}})
            removed[name] = result.deleted_count or 0
        return removed

    async def ids_matching(self, query: Dict[str, Any]) -> List[ObjectId]:
        cur = self.collection.find(query, {"_id": 1})
        return [doc["_id"] async for doc in cur]

    async def delete_forum_comments(self, forum_post_ids: Iterable[ObjectId]) -> int:
        ids = list(forum_post_ids)
        if not ids:
            return 0
        query = {"forum_post_id": {"$in": ids}}
        await self.delete_dependents(await self.ids_matching(query))
        result = await self.collection.delete_many(query)
        return result.deleted_count or 0

    async def recent_in_channel(self, channel_id: ObjectId, limit: int) -> List[Dict[str, Any]]:
        cur = self.collection.find({"channel_id": channel_id}).sort([("created_at", DESCENDING), ("_id", DESCENDING)]).limit(limit)
        return await cur.to_list(length=limit)

    async def page(
        self,
        field: str,
        owner_id: ObjectId,
        limit: int = 50,
        cursor: Optional[str] = None,
    ) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        query: Dict[str, Any] = {field: owner_id}
        parsed = _parse_cursor(cursor)
        if parsed:
            ts, oid = parsed
            query["$or"] = [
                {"created_at": {"$lt": ts}},
                {"created_at": ts, "_id": {"$lt": oid}},
            ]
        cur = self.collection.find(query).sort([("created_at", DESCENDING), ("_id", DESCENDING)]).limit(limit)
        items = await cur.to_list(length=limit)
        next_cursor = None
        if len(items) == limit:
            last = items[-1]
            next_cursor = f"{last['created_at']}:{last['_id']}"
        # oldest first for the UI
        return list(reversed(items)), next_cursor

    async def count_in_conversation_since(self, conversation_id: ObjectId, since_ms: int, exclude_user_id: str) -> int:
        return await self.collection.count_documents(
            {
                "conversation_id": conversation_id,
                "created_at": {"$gt": since_ms},
                "user_id": {"$ne": exclude_user_id},
            }
        )

    async def in_conversation_since(self, conversation_id: ObjectId, since_ms: int, exclude_user_id: str) -> List[Dict[str, Any]]:
        cur = self.collection.find(
            {
                "conversation_id": conversation_id,
                "created_at": {"$gt": since_ms},
                "user_id": {"$ne": exclude_user_id},
            }
        ).sort("created_at", DESCENDING)
        return await cur.to_list(length=None)

    async def last_in_conversation(self, conversation_id: ObjectId) -> Optional[Dict[str, Any]]:
        return await self.collection.find_one({"conversation_id": conversation_id}, sort=[("created_at", DESCENDING)])

    # --- typing indicators ---

    async def set_typing(self, channel_id: ObjectId, user_id: str) -> None:
        await self.typing.update_one(
            {"channel_id": channel_id, "user_id": user_id},
            {"$set": {"last_typing_at": now_ms()}},
            upsert=True,
        )

    async def clear_typing(self, channel_id: ObjectId, user_id: str) -> None:
        await self.typing.delete_many({"channel_id": channel_id, "user_id": user_id})

    async def typing_since(self, channel_id: ObjectId, since_ms: int) -> List[TypingIndicatorDocument]:
        cur = self.typing.find({"channel_id": channel_id, "last_typing_at": {"$gt": since_ms}})
        return await cur.to_list(length=None)

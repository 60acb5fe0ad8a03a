from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from portal.models.conversation import ConversationDocument
from portal.utils.clock import now_ms


class ConversationRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["conversations"]

    @property
    def read_status(self):
        return self._db["conversation_read_status"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("participant_1_id", ASCENDING), ("participant_2_id", ASCENDING)], unique=True)
        await self.collection.create_index([("participant_2_id", ASCENDING)])
        await self.collection.create_index([("last_message_at", DESCENDING)])
        await self.read_status.create_index([("conversation_id", ASCENDING), ("user_id", ASCENDING)], unique=True)
        await self.read_status.create_index([("user_id", ASCENDING)])

    async def get(self, conversation_id: ObjectId) -> Optional[ConversationDocument]:
        return await self.collection.find_one({"_id": conversation_id})

    async def get_or_create_one_to_one(self, user_a: str, user_b: str) -> Tuple[Dict[str, Any], bool]:
        first, second = sorted([user_a, user_b])
        existing = await self.collection.find_one({"participant_1_id": first, "participant_2_id": second})
        if existing:
            return existing, False
        doc: ConversationDocument = {
            "participant_1_id": first,
            "participant_2_id": second,
            "created_at": now_ms(),
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc, True

    async def touch(self, conversation_id: ObjectId, at: int) -> None:
        await self.collection.update_one(
            {"_id": conversation_id},
            {"$max": {"last_message_at": at}},
        )

    async def list_for_user(self, user_id: str) -> List[ConversationDocument]:
        query = {"$or": [{"participant_1_id": user_id}, {"participant_2_id": user_id}]}
        cur = self.collection.find(query).sort([("last_message_at", DESCENDING), ("created_at", DESCENDING)])
        return await cur.to_list(length=None)

    async def read_markers(self, user_id: str) -> Dict[ObjectId, int]:
        cur = self.read_status.find({"user_id": user_id})
        return {doc["conversation_id"]: doc.get("last_read_at", 0) async for doc in cur}

    async def mark_read(self, conversation_id: ObjectId, user_id: str, at: Optional[int] = None) -> None:
        await self.read_status.update_one(
            {"conversation_id": conversation_id, "user_id": user_id},
            {"$max": {"last_read_at": at if at is not None else now_ms()}},
            upsert=True,
        )

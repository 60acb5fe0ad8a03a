from typing import Iterable, Optional, Set

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

from portal.models.inbox import InboxClearedAtDocument
from portal.utils.clock import now_ms


class InboxRepository:
    """Per-user mention acknowledgements and per-workspace inbox watermarks."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def read_status(self):
        return self._db["mention_read_status"]

    @property
    def cleared(self):
        return self._db["inbox_cleared_at"]

    async def ensure_indexes(self) -> None:
        await self.read_status.create_index([("user_id", ASCENDING), ("message_id", ASCENDING)], unique=True)
        await self.cleared.create_index([("user_id", ASCENDING), ("organization_id", ASCENDING)], unique=True)

    async def read_message_ids(self, user_id: str, message_ids: Iterable[ObjectId]) -> Set[ObjectId]:
        ids = list(message_ids)
        if not ids:
            return set()
        cur = self.read_status.find({"user_id": user_id, "message_id": {"$in": ids}}, {"message_id": 1})
        return {doc["message_id"] async for doc in cur}

    async def mark_read(self, user_id: str, message_id: ObjectId) -> bool:
        result = await self.read_status.update_one(
            {"user_id": user_id, "message_id": message_id},
            {"$setOnInsert": {"read_at": now_ms()}},
            upsert=True,
        )
        return result.upserted_id is not None

    async def cleared_at(self, user_id: str, organization_id: ObjectId) -> int:
        doc: Optional[InboxClearedAtDocument] = await self.cleared.find_one({"user_id": user_id, "organization_id": organization_id})
        return doc.get("cleared_at", 0) if doc else 0

    async def set_cleared_at(self, user_id: str, organization_id: ObjectId, at: int) -> None:
        await self.cleared.update_one(
            {"user_id": user_id, "organization_id": organization_id},
            {"$set": {"cleared_at": at}},
            upsert=True,
        )

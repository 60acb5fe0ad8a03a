from typing import List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

from portal.models.organization import OrganizationDocument, OrganizationMemberDocument
from portal.utils.clock import now_ms


class OrganizationRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["organizations"]

    @property
    def members(self):
        return self._db["organization_members"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("slug", ASCENDING)], unique=True)
        await self.collection.create_index([("is_public", ASCENDING)])
        await self.members.create_index([("organization_id", ASCENDING), ("user_id", ASCENDING)], unique=True)
        await self.members.create_index([("user_id", ASCENDING)])

    async def create(self, name: str, slug: str, created_by: str, description: Optional[str] = None, is_public: bool = False, logo_url: Optional[str] = None) -> OrganizationDocument:
        doc: OrganizationDocument = {
            "name": name,
            "slug": slug,
            "description": description,
            "is_public": is_public,
            "logo_url": logo_url,
            "created_by": created_by,
            "created_at": now_ms(),
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    async def get(self, organization_id: ObjectId) -> Optional[OrganizationDocument]:
        return await self.collection.find_one({"_id": organization_id})

    async def get_by_slug(self, slug: str) -> Optional[OrganizationDocument]:
        return await self.collection.find_one({"slug": slug})

    async def list_public(self) -> List[OrganizationDocument]:
        cur = self.collection.find({"is_public": True}).sort("name", ASCENDING)
        return await cur.to_list(length=None)

    async def set_public(self, organization_id: ObjectId, is_public: bool) -> None:
        await self.collection.update_one({"_id": organization_id}, {"$set": {"is_public": is_public}})

    async def get_membership(self, organization_id: ObjectId, user_id: str) -> Optional[OrganizationMemberDocument]:
        return await self.members.find_one({"organization_id": organization_id, "user_id": user_id})

    async def add_member(self, organization_id: ObjectId, user_id: str, role: str = "member") -> OrganizationMemberDocument:
        doc: OrganizationMemberDocument = {
            "organization_id": organization_id,
            "user_id": user_id,
            "role": role,
            "joined_at": now_ms(),
        }
        result = await self.members.insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    async def set_member_role(self, organization_id: ObjectId, user_id: str, role: str) -> bool:
        result = await self.members.update_one(
            {"organization_id": organization_id, "user_id": user_id},
            {"$set": {"role": role}},
        )
        return bool(result.matched_count)

    async def list_members(self, organization_id: ObjectId) -> List[OrganizationMemberDocument]:
        cur = self.members.find({"organization_id": organization_id}).sort("joined_at", ASCENDING)
        return await cur.to_list(length=None)

    async def count_members(self, organization_id: ObjectId) -> int:
        return await self.members.count_documents({"organization_id": organization_id})

    async def list_memberships_for_user(self, user_id: str) -> List[OrganizationMemberDocument]:
        cur = self.members.find({"user_id": user_id}).sort("joined_at", ASCENDING)
        return await cur.to_list(length=None)

    async def member_ids(self, organization_id: ObjectId) -> List[str]:
        cur = self.members.find({"organization_id": organization_id}, {"user_id": 1})
        return [doc["user_id"] async for doc in cur]

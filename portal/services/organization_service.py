import logging
from typing import Any, Dict, List, Optional

from pymongo.errors import DuplicateKeyError

from portal.errors import Conflict, InvalidRequest, NotAuthenticated, NotFound
from portal.repositories.organization_repository import OrganizationRepository
from portal.repositories.user_repository import UserRepository
from portal.services.access import AccessPolicy
from portal.utils.ids import serialize, to_object_id


logger = logging.getLogger(__name__)


class OrganizationService:

    def __init__(self, org_repo: OrganizationRepository, user_repo: UserRepository, access: AccessPolicy) -> None:
        self._org_repo = org_repo
        self._user_repo = user_repo
        self._access = access

    async def create_workspace(self, payload: Dict[str, Any], user_id: Optional[str]) -> Dict[str, Any]:
        """
        Create a workspace:
        - slug must be unused
        - the creator joins as admin
        - the workspace becomes the creator's primary one
        """
        if not user_id:
            raise NotAuthenticated()
        if await self._org_repo.get_by_slug(payload["slug"]):
            raise Conflict("Slug already taken")
        try:
            org = await self._org_repo.create(
                name=payload["name"].strip(),
                slug=payload["slug"],
                created_by=user_id,
                description=payload.get("description"),
                is_public=bool(payload.get("is_public")),
                logo_url=payload.get("logo_url"),
            )
        except DuplicateKeyError:
            raise Conflict("Slug already taken")
        await self._org_repo.add_member(org["_id"], user_id, role="admin")
        await self._user_repo.set_primary_workspace(user_id, org["_id"])
        logger.info("workspace %s created by %s", org["_id"], user_id)
        return serialize(org)

    async def check_slug_availability(self, slug: str) -> Dict[str, bool]:
        return {"available": await self._org_repo.get_by_slug(slug) is None}

    async def join_workspace(self, organization_id: str, user_id: Optional[str]) -> Dict[str, Any]:
        if not user_id:
            raise NotAuthenticated()
        org_oid = to_object_id(organization_id)
        org = await self._org_repo.get(org_oid) if org_oid else None
        if not org:
            raise NotFound("Workspace not found")
        if not org.get("is_public"):
            raise InvalidRequest("Workspace is not public")
        if await self._org_repo.get_membership(org_oid, user_id):
            raise Conflict("Already a member")
        try:
            membership = await self._org_repo.add_member(org_oid, user_id, role="member")
        except DuplicateKeyError:
            raise Conflict("Already a member")
        profile = await self._user_repo.get_by_external_id(user_id)
        if profile and not profile.get("primary_workspace_id"):
            await self._user_repo.set_primary_workspace(user_id, org_oid)
        return serialize(membership)

    async def get_workspace_by_slug(self, slug: str, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        org = await self._org_repo.get_by_slug(slug)
        if not org:
            return None
        membership = await self._access.membership(org["_id"], user_id)
        if membership is None:
            return None
        return serialize({**org, "role": membership["role"]})

    async def list_public_workspaces(self, user_id: Optional[str]) -> List[Dict[str, Any]]:
        if not user_id:
            return []
        results = []
        for org in await self._org_repo.list_public():
            results.append(
                {
                    "_id": org["_id"],
                    "name": org["name"],
                    "slug": org["slug"],
                    "description": org.get("description"),
                    "logo_url": org.get("logo_url"),
                    "member_count": await self._org_repo.count_members(org["_id"]),
                }
            )
        return serialize(results)

    async def list_my_memberships(self, user_id: Optional[str]) -> List[Dict[str, Any]]:
        if not user_id:
            return []
        return serialize(await self._org_repo.list_memberships_for_user(user_id))

    async def update_workspace_public(self, organization_id: str, is_public: bool, user_id: Optional[str]) -> None:
        org_oid = to_object_id(organization_id)
        await self._access.require_admin(org_oid, user_id)
        await self._org_repo.set_public(org_oid, is_public)

    async def list_members(self, organization_id: str, user_id: Optional[str]) -> List[Dict[str, Any]]:
        org_oid = to_object_id(organization_id)
        if await self._access.membership(org_oid, user_id) is None:
            return []
        return serialize(await self._org_repo.list_members(org_oid))

    async def add_member(self, organization_id: str, member_id: str, role: str, user_id: Optional[str]) -> Dict[str, Any]:
        org_oid = to_object_id(organization_id)
        await self._access.require_admin(org_oid, user_id)
        if await self._org_repo.get_membership(org_oid, member_id):
            raise Conflict("Already a member")
        try:
            membership = await self._org_repo.add_member(org_oid, member_id, role=role)
        except DuplicateKeyError:
            raise Conflict("Already a member")
        logger.info("member %s added to %s as %s", member_id, org_oid, role)
        return serialize(membership)

    async def set_member_role(self, organization_id: str, member_id: str, role: str, user_id: Optional[str]) -> None:
        org_oid = to_object_id(organization_id)
        await self._access.require_admin(org_oid, user_id)
        if not await self._org_repo.set_member_role(org_oid, member_id, role):
            raise NotFound("Member not found")
        logger.info("member %s in %s now %s", member_id, org_oid, role)

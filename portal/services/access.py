from typing import Any, Dict, Iterable, Optional, Set

from bson import ObjectId

from portal.errors import NotAuthenticated, NotAuthorized
from portal.repositories.channel_repository import ChannelRepository
from portal.repositories.organization_repository import OrganizationRepository


ADMIN_ONLY = "Only organization admins can perform this action"


def is_admin(membership: Optional[Dict[str, Any]]) -> bool:
    return bool(membership) and membership.get("role") == "admin"


class AccessPolicy:
    """Membership and channel-visibility checks shared by every service.

    A private channel is visible to organization admins, to its creator and
    to users holding an explicit channel membership row. Public channels are
    visible to every organization member.
    """

    def __init__(self, org_repo: OrganizationRepository, channel_repo: ChannelRepository) -> None:
        self._org_repo = org_repo
        self._channel_repo = channel_repo

    async def membership(self, organization_id: Optional[ObjectId], user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if organization_id is None or not user_id:
            return None
        return await self._org_repo.get_membership(organization_id, user_id)

    async def require_member(self, organization_id: Optional[ObjectId], user_id: Optional[str]) -> Dict[str, Any]:
        if not user_id:
            raise NotAuthenticated()
        membership = await self.membership(organization_id, user_id)
        if membership is None:
            raise NotAuthorized("Not a member of this organization")
        return membership

    async def require_admin(self, organization_id: Optional[ObjectId], user_id: Optional[str]) -> Dict[str, Any]:
        membership = await self.require_member(organization_id, user_id)
        if not is_admin(membership):
            raise NotAuthorized(ADMIN_ONLY)
        return membership

    async def can_access_channel(self, channel: Dict[str, Any], membership: Optional[Dict[str, Any]], user_id: str) -> bool:
        if membership is None:
            return False
        if not channel.get("is_private"):
            return True
        if is_admin(membership) or channel.get("created_by") == user_id:
            return True
        return await self._channel_repo.is_member(channel["_id"], user_id)

    async def accessible_channel_ids(self, channels: Iterable[Dict[str, Any]], membership: Optional[Dict[str, Any]], user_id: str) -> Set[ObjectId]:
        """Batch form of can_access_channel over one organization's channels."""
        if membership is None:
            return set()
        visible: Set[ObjectId] = set()
        pending = []
        for channel in channels:
            if not channel.get("is_private") or is_admin(membership) or channel.get("created_by") == user_id:
                visible.add(channel["_id"])
            else:
                pending.append(channel["_id"])
        if pending:
            visible |= await self._channel_repo.channels_with_member(user_id, pending)
        return visible


def access_policy(db) -> AccessPolicy:
    return AccessPolicy(OrganizationRepository(db), ChannelRepository(db))

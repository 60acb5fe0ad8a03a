from typing import Any, Dict, Optional

from portal.errors import NotAuthenticated, NotAuthorized, NotFound
from portal.repositories.user_repository import UserRepository
from portal.schemas.user import Identity
from portal.services.access import AccessPolicy
from portal.utils.ids import serialize, to_object_id


class UserService:
    """Profiles mirrored from the identity provider."""

    def __init__(self, user_repository: UserRepository, access: AccessPolicy):
        self.user_repository = user_repository
        self._access = access

    async def sync_profile(self, identity: Identity, overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Upsert the caller's profile.
        Claims from the token are the defaults; explicit fields in the body win.
        """
        data = {
            "email": identity.email,
            "first_name": identity.first_name,
            "last_name": identity.last_name,
            "image_url": identity.image_url,
        }
        for key, value in (overrides or {}).items():
            if value is not None:
                data[key] = value
        profile = await self.user_repository.upsert_profile(identity.user_id, **data)
        return serialize(profile)

    async def current_user(self, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not user_id:
            return None
        profile = await self.user_repository.get_by_external_id(user_id)
        return serialize(profile) if profile else None

    async def set_primary_workspace(self, organization_id: str, user_id: Optional[str]) -> None:
        if not user_id:
            raise NotAuthenticated()
        org_oid = to_object_id(organization_id)
        if await self._access.membership(org_oid, user_id) is None:
            raise NotAuthorized("Not a member of this workspace")
        if not await self.user_repository.set_primary_workspace(user_id, org_oid):
            raise NotFound("User not found")

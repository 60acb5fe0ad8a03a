from typing import Optional

from fastapi import APIRouter, Depends

from portal.database.connection import mongo_db_dependency
from portal.repositories.organization_repository import OrganizationRepository
from portal.repositories.user_repository import UserRepository
from portal.schemas.organization import MemberAdd, MemberRoleUpdate, WorkspaceCreate, WorkspaceVisibility
from portal.schemas.user import Identity
from portal.services.access import access_policy
from portal.services.organization_service import OrganizationService
from portal.utils.dependencies import get_current_user, get_optional_user


router = APIRouter(prefix="/organizations", tags=["organizations"])


def get_organization_service(db = Depends(mongo_db_dependency)) -> OrganizationService:
    return OrganizationService(OrganizationRepository(db), UserRepository(db), access_policy(db))


@router.post("", status_code=201)
async def create_workspace(body: WorkspaceCreate, current_user: Identity = Depends(get_current_user), service: OrganizationService = Depends(get_organization_service)):
    return await service.create_workspace(body.model_dump(), current_user.user_id)


@router.get("/public")
async def list_public_workspaces(current_user: Optional[Identity] = Depends(get_optional_user), service: OrganizationService = Depends(get_organization_service)):
    user_id = current_user.user_id if current_user else None
    return {"items": await service.list_public_workspaces(user_id)}


@router.get("/memberships")
async def list_my_memberships(current_user: Optional[Identity] = Depends(get_optional_user), service: OrganizationService = Depends(get_organization_service)):
    user_id = current_user.user_id if current_user else None
    return {"items": await service.list_my_memberships(user_id)}


@router.get("/slug-availability/{slug}")
async def check_slug_availability(slug: str, service: OrganizationService = Depends(get_organization_service)):
    return await service.check_slug_availability(slug)


@router.get("/by-slug/{slug}")
async def get_workspace_by_slug(slug: str, current_user: Optional[Identity] = Depends(get_optional_user), service: OrganizationService = Depends(get_organization_service)):
    user_id = current_user.user_id if current_user else None
    return {"workspace": await service.get_workspace_by_slug(slug, user_id)}


@router.post("/{organization_id}/join")
async def join_workspace(organization_id: str, current_user: Identity = Depends(get_current_user), service: OrganizationService = Depends(get_organization_service)):
    return await service.join_workspace(organization_id, current_user.user_id)


@router.patch("/{organization_id}/visibility")
async def update_workspace_public(organization_id: str, body: WorkspaceVisibility, current_user: Identity = Depends(get_current_user), service: OrganizationService = Depends(get_organization_service)):
    await service.update_workspace_public(organization_id, body.is_public, current_user.user_id)
    return {"ok": True}


@router.get("/{organization_id}/members")
async def list_members(organization_id: str, current_user: Optional[Identity] = Depends(get_optional_user), service: OrganizationService = Depends(get_organization_service)):
    user_id = current_user.user_id if current_user else None
    return {"items": await service.list_members(organization_id, user_id)}


@router.post("/{organization_id}/members", status_code=201)
async def add_member(organization_id: str, body: MemberAdd, current_user: Identity = Depends(get_current_user), service: OrganizationService = Depends(get_organization_service)):
    return await service.add_member(organization_id, body.user_id, body.role, current_user.user_id)


@router.patch("/{organization_id}/members/{member_id}")
async def set_member_role(organization_id: str, member_id: str, body: MemberRoleUpdate, current_user: Identity = Depends(get_current_user), service: OrganizationService = Depends(get_organization_service)):
    await service.set_member_role(organization_id, member_id, body.role, current_user.user_id)
    return {"ok": True}

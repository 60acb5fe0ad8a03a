from typing import Optional

from fastapi import APIRouter, Depends

from portal.database.connection import mongo_db_dependency
from portal.repositories.user_repository import UserRepository
from portal.schemas.user import Identity, PrimaryWorkspaceUpdate, ProfileSync
from portal.services.access import access_policy
from portal.services.user_service import UserService
from portal.utils.dependencies import get_current_user, get_optional_user


router = APIRouter(prefix="/users", tags=["users"])


def get_user_service(db = Depends(mongo_db_dependency)) -> UserService:
    return UserService(UserRepository(db), access_policy(db))


@router.get("/me")
async def current_user_profile(current_user: Optional[Identity] = Depends(get_optional_user), service: UserService = Depends(get_user_service)):
    user_id = current_user.user_id if current_user else None
    return {"user": await service.current_user(user_id)}


@router.put("/me")
async def sync_profile(body: Optional[ProfileSync] = None, current_user: Identity = Depends(get_current_user), service: UserService = Depends(get_user_service)):
    overrides = body.model_dump(exclude_unset=True) if body else None
    return {"user": await service.sync_profile(current_user, overrides)}


@router.put("/me/primary-workspace")
async def set_primary_workspace(body: PrimaryWorkspaceUpdate, current_user: Identity = Depends(get_current_user), service: UserService = Depends(get_user_service)):
    await service.set_primary_workspace(body.organization_id, current_user.user_id)
    return {"ok": True}

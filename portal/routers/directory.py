from typing import Optional

from fastapi import APIRouter, Depends

from portal.database.connection import mongo_db_dependency
from portal.repositories.category_repository import CategoryRepository
from portal.repositories.channel_repository import ChannelRepository
from portal.repositories.mute_repository import MuteRepository
from portal.schemas.channel import (
    CategoryCreate,
    CategoryUpdate,
    ChannelCreate,
    ChannelUpdate,
    MoveChannel,
    ReorderCategories,
    ReorderChannels,
)
from portal.schemas.user import Identity
from portal.services.access import access_policy
from portal.services.directory_service import DirectoryService
from portal.utils.dependencies import get_current_user, get_optional_user


router = APIRouter(tags=["directory"])


def get_directory_service(db = Depends(mongo_db_dependency)) -> DirectoryService:
    return DirectoryService(CategoryRepository(db), ChannelRepository(db), MuteRepository(db), access_policy(db))


def _user_id(identity: Optional[Identity]) -> Optional[str]:
    return identity.user_id if identity else None


@router.get("/organizations/{organization_id}/directory")
async def list_directory(organization_id: str, current_user: Optional[Identity] = Depends(get_optional_user), service: DirectoryService = Depends(get_directory_service)):
    return {"categories": await service.list_directory(organization_id, _user_id(current_user))}


@router.get("/organizations/{organization_id}/muted-channels")
async def list_muted_channels(organization_id: str, current_user: Optional[Identity] = Depends(get_optional_user), service: DirectoryService = Depends(get_directory_service)):
    return {"channel_ids": await service.list_muted_channels(organization_id, _user_id(current_user))}


# categories

@router.post("/organizations/{organization_id}/categories", status_code=201)
async def create_category(organization_id: str, body: CategoryCreate, current_user: Identity = Depends(get_current_user), service: DirectoryService = Depends(get_directory_service)):
    return await service.create_category(organization_id, body.name, current_user.user_id)


@router.put("/organizations/{organization_id}/categories/order")
async def reorder_categories(organization_id: str, body: ReorderCategories, current_user: Identity = Depends(get_current_user), service: DirectoryService = Depends(get_directory_service)):
    await service.reorder_categories(organization_id, body.category_ids, current_user.user_id)
    return {"ok": True}


@router.patch("/categories/{category_id}")
async def update_category(category_id: str, body: CategoryUpdate, current_user: Identity = Depends(get_current_user), service: DirectoryService = Depends(get_directory_service)):
    return await service.update_category(category_id, body.model_dump(exclude_unset=True), current_user.user_id)


@router.delete("/categories/{category_id}")
async def delete_category(category_id: str, current_user: Identity = Depends(get_current_user), service: DirectoryService = Depends(get_directory_service)):
    await service.delete_category(category_id, current_user.user_id)
    return {"ok": True}


@router.put("/categories/{category_id}/channels/order")
async def reorder_channels(category_id: str, body: ReorderChannels, current_user: Identity = Depends(get_current_user), service: DirectoryService = Depends(get_directory_service)):
    await service.reorder_channels(category_id, body.channel_ids, current_user.user_id)
    return {"ok": True}


# channels

@router.post("/organizations/{organization_id}/channels", status_code=201)
async def create_channel(organization_id: str, body: ChannelCreate, current_user: Identity = Depends(get_current_user), service: DirectoryService = Depends(get_directory_service)):
    return await service.create_channel(organization_id, body.model_dump(), current_user.user_id)


@router.get("/channels/{channel_id}")
async def get_channel(channel_id: str, current_user: Optional[Identity] = Depends(get_optional_user), service: DirectoryService = Depends(get_directory_service)):
    return {"channel": await service.get_channel(channel_id, _user_id(current_user))}


@router.patch("/channels/{channel_id}")
async def update_channel(channel_id: str, body: ChannelUpdate, current_user: Identity = Depends(get_current_user), service: DirectoryService = Depends(get_directory_service)):
    return await service.update_channel(channel_id, body.model_dump(exclude_unset=True), current_user.user_id)


@router.delete("/channels/{channel_id}")
async def delete_channel(channel_id: str, current_user: Identity = Depends(get_current_user), service: DirectoryService = Depends(get_directory_service)):
    removed = await service.delete_channel(channel_id, current_user.user_id)
    return {"ok": True, "removed": removed}


@router.post("/channels/{channel_id}/move")
async def move_channel(channel_id: str, body: MoveChannel, current_user: Identity = Depends(get_current_user), service: DirectoryService = Depends(get_directory_service)):
    return await service.move_channel(channel_id, body.target_category_id, body.new_order, current_user.user_id)


@router.get("/channels/{channel_id}/members")
async def get_channel_members(channel_id: str, current_user: Optional[Identity] = Depends(get_optional_user), service: DirectoryService = Depends(get_directory_service)):
    return {"items": await service.get_channel_members(channel_id, _user_id(current_user))}


# mutes

@router.get("/channels/{channel_id}/mute")
async def get_mute_status(channel_id: str, current_user: Optional[Identity] = Depends(get_optional_user), service: DirectoryService = Depends(get_directory_service)):
    return await service.get_mute_status(channel_id, _user_id(current_user))


@router.put("/channels/{channel_id}/mute")
async def mute_channel(channel_id: str, current_user: Identity = Depends(get_current_user), service: DirectoryService = Depends(get_directory_service)):
    return await service.mute_channel(channel_id, current_user.user_id)


@router.delete("/channels/{channel_id}/mute")
async def unmute_channel(channel_id: str, current_user: Identity = Depends(get_current_user), service: DirectoryService = Depends(get_directory_service)):
    return await service.unmute_channel(channel_id, current_user.user_id)


@router.post("/channels/{channel_id}/mute/toggle")
async def toggle_mute(channel_id: str, current_user: Identity = Depends(get_current_user), service: DirectoryService = Depends(get_directory_service)):
    return await service.toggle_mute(channel_id, current_user.user_id)

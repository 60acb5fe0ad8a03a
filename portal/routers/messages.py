from typing import Optional

from fastapi import APIRouter, Depends, Query

from portal.database.connection import mongo_db_dependency
from portal.repositories.channel_repository import ChannelRepository
from portal.repositories.device_repository import DeviceRepository
from portal.repositories.message_repository import MessageRepository
from portal.repositories.organization_repository import OrganizationRepository
from portal.schemas.message import MessageCreate, MessageEdit
from portal.schemas.user import Identity
from portal.services.access import access_policy
from portal.services.message_service import MessageService
from portal.services.notifier import Notifier
from portal.utils.dependencies import get_current_user, get_optional_user


router = APIRouter(tags=["messages"])


def get_message_service(db = Depends(mongo_db_dependency)) -> MessageService:
    return MessageService(MessageRepository(db), ChannelRepository(db), OrganizationRepository(db), access_policy(db), Notifier(DeviceRepository(db)))


@router.post("/channels/{channel_id}/messages", status_code=201)
async def send_message(channel_id: str, body: MessageCreate, current_user: Identity = Depends(get_current_user), service: MessageService = Depends(get_message_service)):
    return await service.send_channel_message(channel_id, body.content, current_user.user_id, body.mentions, body.parent_message_id)


@router.get("/channels/{channel_id}/messages")
async def list_messages(channel_id: str, limit: int = Query(50, ge=1, le=200), cursor: Optional[str] = None, current_user: Optional[Identity] = Depends(get_optional_user), service: MessageService = Depends(get_message_service)):
    user_id = current_user.user_id if current_user else None
    items, next_cursor = await service.list_channel_messages(channel_id, user_id, limit=limit, cursor=cursor)
    return {"items": items, "next_cursor": next_cursor}


@router.patch("/messages/{message_id}")
async def edit_message(message_id: str, body: MessageEdit, current_user: Identity = Depends(get_current_user), service: MessageService = Depends(get_message_service)):
    return await service.edit_message(message_id, body.content, current_user.user_id)


@router.delete("/messages/{message_id}")
async def delete_message(message_id: str, current_user: Identity = Depends(get_current_user), service: MessageService = Depends(get_message_service)):
    return await service.delete_message(message_id, current_user.user_id)


@router.get("/channels/{channel_id}/typing")
async def typing_users(channel_id: str, current_user: Optional[Identity] = Depends(get_optional_user), service: MessageService = Depends(get_message_service)):
    user_id = current_user.user_id if current_user else None
    return {"user_ids": await service.typing_users(channel_id, user_id)}


@router.put("/channels/{channel_id}/typing")
async def set_typing(channel_id: str, current_user: Identity = Depends(get_current_user), service: MessageService = Depends(get_message_service)):
    await service.set_typing(channel_id, current_user.user_id)
    return {"ok": True}


@router.delete("/channels/{channel_id}/typing")
async def clear_typing(channel_id: str, current_user: Identity = Depends(get_current_user), service: MessageService = Depends(get_message_service)):
    await service.clear_typing(channel_id, current_user.user_id)
    return {"ok": True}

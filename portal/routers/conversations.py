from typing import Optional

from fastapi import APIRouter, Depends, Query

from portal.database.connection import mongo_db_dependency
from portal.repositories.conversation_repository import ConversationRepository
from portal.repositories.device_repository import DeviceRepository
from portal.repositories.message_repository import MessageRepository
from portal.repositories.user_repository import UserRepository
from portal.schemas.message import ConversationCreate, MessageCreate
from portal.schemas.user import Identity
from portal.services.chat_service import ChatService
from portal.services.notifier import Notifier
from portal.utils.dependencies import get_current_user, get_optional_user


router = APIRouter(prefix="/conversations", tags=["chat"])


def get_chat_service(db = Depends(mongo_db_dependency)) -> ChatService:
    convo_repo = ConversationRepository(db)
    msg_repo = MessageRepository(db)
    return ChatService(msg_repo, convo_repo, UserRepository(db), Notifier(DeviceRepository(db)))


@router.post("")
async def get_or_create_conversation(body: ConversationCreate, current_user: Identity = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    return await service.get_or_create_conversation(current_user.user_id, body.other_user_id)


@router.get("")
async def list_conversations(current_user: Optional[Identity] = Depends(get_optional_user), service: ChatService = Depends(get_chat_service)):
    user_id = current_user.user_id if current_user else None
    return {"items": await service.list_conversations(user_id)}


@router.get("/{conversation_id}")
async def get_conversation(conversation_id: str, current_user: Optional[Identity] = Depends(get_optional_user), service: ChatService = Depends(get_chat_service)):
    user_id = current_user.user_id if current_user else None
    return {"conversation": await service.get_conversation(conversation_id, user_id)}


@router.get("/{conversation_id}/messages")
async def list_messages(conversation_id: str, limit: int = Query(50, ge=1, le=200), cursor: Optional[str] = None, current_user: Optional[Identity] = Depends(get_optional_user), service: ChatService = Depends(get_chat_service)):
    user_id = current_user.user_id if current_user else None
    messages, next_cursor = await service.get_history(conversation_id, user_id, limit=limit, cursor=cursor)
    return {"items": messages, "next_cursor": next_cursor}


@router.post("/{conversation_id}/messages", status_code=201)
async def send_message(conversation_id: str, body: MessageCreate, current_user: Identity = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    return await service.send_direct_message(conversation_id, body.content, current_user.user_id, body.mentions)


@router.post("/{conversation_id}/read")
async def mark_read(conversation_id: str, current_user: Identity = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    await service.mark_read(conversation_id, current_user.user_id)
    return {"ok": True}

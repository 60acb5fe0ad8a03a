from typing import Optional

from fastapi import APIRouter, Depends, Query

from portal.database.connection import mongo_db_dependency
from portal.repositories.channel_repository import ChannelRepository
from portal.repositories.conversation_repository import ConversationRepository
from portal.repositories.forum_repository import ForumPostRepository
from portal.repositories.message_repository import MessageRepository
from portal.repositories.saved_repository import SavedMessageRepository
from portal.repositories.user_repository import UserRepository
from portal.schemas.user import Identity
from portal.services.access import access_policy
from portal.services.saved_service import SavedMessageService
from portal.utils.dependencies import get_current_user, get_optional_user


router = APIRouter(tags=["saved"])


def get_saved_service(db = Depends(mongo_db_dependency)) -> SavedMessageService:
    return SavedMessageService(
        SavedMessageRepository(db),
        MessageRepository(db),
        ChannelRepository(db),
        ForumPostRepository(db),
        ConversationRepository(db),
        UserRepository(db),
        access_policy(db),
    )


@router.put("/messages/{message_id}/save")
async def save_message(message_id: str, current_user: Identity = Depends(get_current_user), service: SavedMessageService = Depends(get_saved_service)):
    return await service.save_message(message_id, current_user.user_id)


@router.delete("/messages/{message_id}/save")
async def unsave_message(message_id: str, current_user: Identity = Depends(get_current_user), service: SavedMessageService = Depends(get_saved_service)):
    return await service.unsave_message(message_id, current_user.user_id)


@router.get("/saved")
async def list_saved(limit: int = Query(50, ge=1, le=200), current_user: Optional[Identity] = Depends(get_optional_user), service: SavedMessageService = Depends(get_saved_service)):
    user_id = current_user.user_id if current_user else None
    return {"items": await service.list_saved(user_id, limit=limit)}

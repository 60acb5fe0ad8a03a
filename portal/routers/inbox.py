from typing import Optional

from fastapi import APIRouter, Depends

from portal.database.connection import mongo_db_dependency
from portal.repositories.category_repository import CategoryRepository
from portal.repositories.channel_repository import ChannelRepository
from portal.repositories.conversation_repository import ConversationRepository
from portal.repositories.inbox_repository import InboxRepository
from portal.repositories.message_repository import MessageRepository
from portal.repositories.mute_repository import MuteRepository
from portal.repositories.saved_repository import SavedMessageRepository
from portal.repositories.user_repository import UserRepository
from portal.schemas.user import Identity
from portal.services.access import access_policy
from portal.services.mention_service import MentionService
from portal.utils.dependencies import get_current_user, get_optional_user


router = APIRouter(tags=["inbox"])


def get_mention_service(db = Depends(mongo_db_dependency)) -> MentionService:
    return MentionService(
        ChannelRepository(db),
        CategoryRepository(db),
        MessageRepository(db),
        MuteRepository(db),
        InboxRepository(db),
        UserRepository(db),
        ConversationRepository(db),
        SavedMessageRepository(db),
        access_policy(db),
    )


def _user_id(identity: Optional[Identity]) -> Optional[str]:
    return identity.user_id if identity else None


@router.get("/organizations/{organization_id}/inbox/recent")
async def recent_mentions(organization_id: str, current_user: Optional[Identity] = Depends(get_optional_user), service: MentionService = Depends(get_mention_service)):
    return {"items": await service.recent_mentions(organization_id, _user_id(current_user))}


@router.get("/organizations/{organization_id}/inbox/recent-saved")
async def recent_saved_messages(organization_id: str, current_user: Optional[Identity] = Depends(get_optional_user), service: MentionService = Depends(get_mention_service)):
    return {"items": await service.recent_saved_messages(organization_id, _user_id(current_user))}


@router.get("/organizations/{organization_id}/inbox/mentions")
async def all_mentions(organization_id: str, unread_only: bool = False, current_user: Optional[Identity] = Depends(get_optional_user), service: MentionService = Depends(get_mention_service)):
    return {"items": await service.all_mentions(organization_id, _user_id(current_user), unread_only=unread_only)}


@router.get("/organizations/{organization_id}/inbox/unread-counts")
async def unread_counts(organization_id: str, current_user: Optional[Identity] = Depends(get_optional_user), service: MentionService = Depends(get_mention_service)):
    return await service.unread_counts(organization_id, _user_id(current_user))


@router.get("/organizations/{organization_id}/inbox/unread-mention-count")
async def unread_mention_count(organization_id: str, current_user: Optional[Identity] = Depends(get_optional_user), service: MentionService = Depends(get_mention_service)):
    return {"count": await service.unread_mention_count(organization_id, _user_id(current_user))}


@router.get("/inbox/unread-dm-count")
async def unread_dm_count(current_user: Optional[Identity] = Depends(get_optional_user), service: MentionService = Depends(get_mention_service)):
    return {"count": await service.unread_dm_count(_user_id(current_user))}


@router.get("/organizations/{organization_id}/inbox/summary")
async def inbox_summary(organization_id: str, current_user: Optional[Identity] = Depends(get_optional_user), service: MentionService = Depends(get_mention_service)):
    return {"summary": await service.inbox_summary(organization_id, _user_id(current_user))}


@router.post("/organizations/{organization_id}/inbox/mark-all-read")
async def mark_all_mentions_read(organization_id: str, current_user: Identity = Depends(get_current_user), service: MentionService = Depends(get_mention_service)):
    return await service.mark_all_mentions_read(organization_id, current_user.user_id)


@router.post("/organizations/{organization_id}/inbox/clear")
async def clear_inbox(organization_id: str, current_user: Identity = Depends(get_current_user), service: MentionService = Depends(get_mention_service)):
    return await service.clear_inbox(organization_id, current_user.user_id)


@router.post("/mentions/{message_id}/read")
async def mark_mention_read(message_id: str, current_user: Identity = Depends(get_current_user), service: MentionService = Depends(get_mention_service)):
    return await service.mark_mention_read(message_id, current_user.user_id)

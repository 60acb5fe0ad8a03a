from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from portal.database.connection import mongo_db_dependency
from portal.repositories.channel_repository import ChannelRepository
from portal.repositories.forum_repository import ForumPostRepository
from portal.repositories.message_repository import MessageRepository
from portal.repositories.organization_repository import OrganizationRepository
from portal.repositories.user_repository import UserRepository
from portal.schemas.forum import ForumCommentCreate, ForumPostCreate, ForumPostStatusUpdate, ForumPostUpdate, SolvedComment
from portal.schemas.user import Identity
from portal.services.access import access_policy
from portal.services.forum_service import ForumService
from portal.utils.dependencies import get_current_user, get_optional_user


router = APIRouter(tags=["forum"])


def get_forum_service(db = Depends(mongo_db_dependency)) -> ForumService:
    return ForumService(
        ForumPostRepository(db),
        MessageRepository(db),
        ChannelRepository(db),
        OrganizationRepository(db),
        UserRepository(db),
        access_policy(db),
    )


def _user_id(identity: Optional[Identity]) -> Optional[str]:
    return identity.user_id if identity else None


@router.get("/channels/{channel_id}/posts")
async def list_posts(
    channel_id: str,
    status: Optional[Literal["open", "closed", "solved"]] = None,
    limit: int = Query(50, ge=1, le=200),
    current_user: Optional[Identity] = Depends(get_optional_user),
    service: ForumService = Depends(get_forum_service),
):
    return {"items": await service.list_posts(channel_id, _user_id(current_user), status=status, limit=limit)}


@router.post("/channels/{channel_id}/posts", status_code=201)
async def create_post(channel_id: str, body: ForumPostCreate, current_user: Identity = Depends(get_current_user), service: ForumService = Depends(get_forum_service)):
    return await service.create_post(channel_id, body.title, body.content, current_user.user_id)


@router.get("/posts/{post_id}")
async def get_post(post_id: str, current_user: Optional[Identity] = Depends(get_optional_user), service: ForumService = Depends(get_forum_service)):
    return {"post": await service.get_post(post_id, _user_id(current_user))}


@router.patch("/posts/{post_id}")
async def update_post(post_id: str, body: ForumPostUpdate, current_user: Identity = Depends(get_current_user), service: ForumService = Depends(get_forum_service)):
    return await service.update_post(post_id, current_user.user_id, title=body.title, content=body.content)


@router.delete("/posts/{post_id}")
async def delete_post(post_id: str, current_user: Identity = Depends(get_current_user), service: ForumService = Depends(get_forum_service)):
    return await service.delete_post(post_id, current_user.user_id)


@router.put("/posts/{post_id}/status")
async def set_post_status(post_id: str, body: ForumPostStatusUpdate, current_user: Identity = Depends(get_current_user), service: ForumService = Depends(get_forum_service)):
    return await service.set_status(post_id, body.status, current_user.user_id)


@router.post("/posts/{post_id}/pin/toggle")
async def toggle_pin(post_id: str, current_user: Identity = Depends(get_current_user), service: ForumService = Depends(get_forum_service)):
    return await service.toggle_pin(post_id, current_user.user_id)


@router.post("/posts/{post_id}/solved")
async def mark_solved(post_id: str, body: SolvedComment, current_user: Identity = Depends(get_current_user), service: ForumService = Depends(get_forum_service)):
    return await service.mark_solved(post_id, body.comment_id, current_user.user_id)


@router.get("/posts/{post_id}/comments")
async def list_comments(
    post_id: str,
    limit: int = Query(50, ge=1, le=200),
    cursor: Optional[str] = None,
    current_user: Optional[Identity] = Depends(get_optional_user),
    service: ForumService = Depends(get_forum_service),
):
    items, next_cursor = await service.list_comments(post_id, _user_id(current_user), limit=limit, cursor=cursor)
    return {"items": items, "next_cursor": next_cursor}


@router.post("/posts/{post_id}/comments", status_code=201)
async def send_comment(post_id: str, body: ForumCommentCreate, current_user: Identity = Depends(get_current_user), service: ForumService = Depends(get_forum_service)):
    return await service.send_comment(post_id, body.content, current_user.user_id, body.mentions)

import logging
from typing import Any, Dict, List, Optional, Tuple

from portal.errors import InvalidRequest, NotAuthorized, NotFound
from portal.repositories.channel_repository import ChannelRepository
from portal.repositories.forum_repository import ForumPostRepository
from portal.repositories.message_repository import MessageRepository
from portal.repositories.organization_repository import OrganizationRepository
from portal.repositories.user_repository import UserRepository
from portal.services.access import AccessPolicy, is_admin
from portal.services.mention_service import display_name
from portal.services.message_service import clean_mentions
from portal.utils.ids import serialize, to_object_id
from portal.utils.realtime_bus import org_topic, publish_event


logger = logging.getLogger(__name__)

POST_STATUSES = ("open", "closed", "solved")


class ForumService:
    """Posts and comment threads inside forum channels.

    Comments are ordinary messages carrying a forum_post_id instead of a
    channel_id, so they never show up in the channel timeline or the mention
    scan. Posts and comments follow the channel's visibility and read-only
    rules; editing a post, changing its status or picking the solved answer is
    left to its author and organization admins, pinning to admins only.
    """

    def __init__(
        self,
        forum_repo: ForumPostRepository,
        message_repo: MessageRepository,
        channel_repo: ChannelRepository,
        org_repo: OrganizationRepository,
        user_repo: UserRepository,
        access: AccessPolicy,
    ) -> None:
        self._forum_repo = forum_repo
        self._message_repo = message_repo
        self._channel_repo = channel_repo
        self._org_repo = org_repo
        self._user_repo = user_repo
        self._access = access

    async def _visible_channel(self, channel: Optional[Dict[str, Any]], user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not channel or channel.get("deleting"):
            return None
        membership = await self._access.membership(channel["organization_id"], user_id)
        if not await self._access.can_access_channel(channel, membership, user_id):
            return None
        return membership

    async def _forum_channel(self, channel_id: str, user_id: Optional[str]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        oid = to_object_id(channel_id)
        channel = await self._channel_repo.get(oid) if oid else None
        if not channel or channel.get("deleting"):
            raise NotFound("Channel not found")
        if channel.get("channel_type") != "forum":
            raise InvalidRequest("Channel is not a forum")
        membership = await self._access.require_member(channel["organization_id"], user_id)
        if not await self._access.can_access_channel(channel, membership, user_id):
            raise NotAuthorized("You do not have access to this channel")
        return channel, membership

    async def _post_access(self, post_id: str, user_id: Optional[str]) -> Tuple[Dict[str, Any], Dict[str, Any], Dict[str, Any]]:
        oid = to_object_id(post_id)
        post = await self._forum_repo.get(oid) if oid else None
        if not post:
            raise NotFound("Post not found")
        channel, membership = await self._forum_channel(str(post["channel_id"]), user_id)
        return post, channel, membership

    async def _author_or_admin(self, post_id: str, user_id: Optional[str], action: str) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        post, channel, membership = await self._post_access(post_id, user_id)
        if post["author_id"] != user_id and not is_admin(membership):
            raise NotAuthorized(f"Not authorized to {action} this post")
        return post, channel

    async def _with_authors(self, posts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        profiles = await self._user_repo.get_many_by_external_id(p["author_id"] for p in posts)
        items = []
        for post in posts:
            profile = profiles.get(post["author_id"])
            items.append(
                {
                    **post,
                    "author_name": display_name(profile),
                    "author_image_url": profile.get("image_url") if profile else None,
                }
            )
        return items

    async def _changed(self, channel: Dict[str, Any], event_type: str, post_id) -> None:
        await publish_event(org_topic(channel["organization_id"]), {"type": event_type, "channel_id": str(channel["_id"]), "post_id": str(post_id)})

    # --- reads ---

    async def list_posts(self, channel_id: str, user_id: Optional[str], status: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
        oid = to_object_id(channel_id)
        channel = await self._channel_repo.get(oid) if oid else None
        if await self._visible_channel(channel, user_id) is None:
            return []
        posts = await self._forum_repo.list_for_channel(channel["_id"], status=status, limit=limit)
        return serialize(await self._with_authors(posts))

    async def get_post(self, post_id: str, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        oid = to_object_id(post_id)
        post = await self._forum_repo.get(oid) if oid else None
        if not post:
            return None
        membership = await self._visible_channel(await self._channel_repo.get(post["channel_id"]), user_id)
        if membership is None:
            return None
        [item] = await self._with_authors([post])
        item["is_own"] = post["author_id"] == user_id
        item["is_admin"] = is_admin(membership)
        return serialize(item)

    async def list_comments(self, post_id: str, user_id: Optional[str], limit: int = 50, cursor: Optional[str] = None) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        oid = to_object_id(post_id)
        post = await self._forum_repo.get(oid) if oid else None
        if not post:
            return [], None
        if await self._visible_channel(await self._channel_repo.get(post["channel_id"]), user_id) is None:
            return [], None
        items, next_cursor = await self._message_repo.page("forum_post_id", post["_id"], limit=limit, cursor=cursor)
        return serialize(items), next_cursor

    # --- posts ---

    async def create_post(self, channel_id: str, title: str, content: str, user_id: Optional[str]) -> Dict[str, Any]:
        channel, membership = await self._forum_channel(channel_id, user_id)
        if channel.get("permissions") == "readOnly" and not is_admin(membership):
            raise NotAuthorized("This channel is read-only")
        if not title or not title.strip():
            raise InvalidRequest("Post title cannot be empty")
        post = await self._forum_repo.create(channel["_id"], title.strip(), content, user_id)
        logger.info("forum post %s created in channel %s", post["_id"], channel["_id"])
        await self._changed(channel, "forum_post_created", post["_id"])
        return serialize(post)

    async def update_post(self, post_id: str, user_id: Optional[str], title: Optional[str] = None, content: Optional[str] = None) -> Dict[str, Any]:
        post, channel = await self._author_or_admin(post_id, user_id, "edit")
        updates: Dict[str, Any] = {}
        if title is not None:
            if not title.strip():
                raise InvalidRequest("Post title cannot be empty")
            updates["title"] = title.strip()
        if content is not None:
            updates["content"] = content
        await self._forum_repo.update_fields(post["_id"], updates)
        await self._changed(channel, "forum_post_updated", post["_id"])
        return serialize({**post, **updates})

    async def delete_post(self, post_id: str, user_id: Optional[str]) -> Dict[str, Any]:
        post, channel = await self._author_or_admin(post_id, user_id, "delete")
        removed = await self._message_repo.delete_forum_comments([post["_id"]])
        await self._forum_repo.delete(post["_id"])
        logger.info("forum post %s deleted with %d comment(s)", post["_id"], removed)
        await self._changed(channel, "forum_post_deleted", post["_id"])
        return {"success": True, "comments_removed": removed}

    async def set_status(self, post_id: str, status: str, user_id: Optional[str]) -> Dict[str, Any]:
        if status not in POST_STATUSES:
            raise InvalidRequest("Unknown post status")
        post, channel = await self._author_or_admin(post_id, user_id, "update")
        updates: Dict[str, Any] = {"status": status}
        if status != "solved":
            updates["solved_comment_id"] = None
        await self._forum_repo.update_fields(post["_id"], updates)
        await self._changed(channel, "forum_post_updated", post["_id"])
        return serialize({**post, **updates})

    async def toggle_pin(self, post_id: str, user_id: Optional[str]) -> Dict[str, bool]:
        post, channel, membership = await self._post_access(post_id, user_id)
        if not is_admin(membership):
            raise NotAuthorized("Only organization admins can pin posts")
        pinned = not post.get("is_pinned", False)
        await self._forum_repo.update_fields(post["_id"], {"is_pinned": pinned})
        await self._changed(channel, "forum_post_updated", post["_id"])
        return {"is_pinned": pinned}

    async def mark_solved(self, post_id: str, comment_id: str, user_id: Optional[str]) -> Dict[str, Any]:
        post, channel = await self._author_or_admin(post_id, user_id, "update")
        comment_oid = to_object_id(comment_id)
        comment = await self._message_repo.get(comment_oid) if comment_oid else None
        if not comment or comment.get("forum_post_id") != post["_id"]:
            raise NotFound("Comment not found on this post")
        # marking the current answer again unmarks it
        if post.get("solved_comment_id") == comment["_id"]:
            updates: Dict[str, Any] = {"status": "open", "solved_comment_id": None}
        else:
            updates = {"status": "solved", "solved_comment_id": comment["_id"]}
        await self._forum_repo.update_fields(post["_id"], updates)
        await self._changed(channel, "forum_post_updated", post["_id"])
        return serialize({**post, **updates})

    # --- comments ---

    async def send_comment(self, post_id: str, content: str, user_id: Optional[str], mentions: Optional[List[str]] = None) -> Dict[str, Any]:
        post, channel, membership = await self._post_access(post_id, user_id)
        if channel.get("permissions") == "readOnly" and not is_admin(membership):
            raise NotAuthorized("This channel is read-only")
        if not content or not content.strip():
            raise InvalidRequest("Message content cannot be empty")
        cleaned = await clean_mentions(self._org_repo, channel["organization_id"], mentions or [])
        saved = await self._message_repo.save_message(
            user_id=user_id,
            content=content.strip(),
            forum_post_id=post["_id"],
            mentions=cleaned,
        )
        await self._forum_repo.record_comment(post["_id"], saved["created_at"])
        await self._changed(channel, "forum_comment", post["_id"])
        return serialize(saved)

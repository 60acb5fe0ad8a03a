from typing import Any, Dict, List, Optional

from portal.errors import NotAuthenticated, NotFound
from portal.repositories.channel_repository import ChannelRepository
from portal.repositories.conversation_repository import ConversationRepository
from portal.repositories.forum_repository import ForumPostRepository
from portal.repositories.message_repository import MessageRepository
from portal.repositories.saved_repository import SavedMessageRepository
from portal.repositories.user_repository import UserRepository
from portal.services.access import AccessPolicy
from portal.services.chat_service import is_participant
from portal.services.mention_service import sender_summary
from portal.utils.ids import serialize, to_object_id


class SavedMessageService:
    """Per-user bookmarks on channel messages, direct messages and forum comments."""

    def __init__(
        self,
        saved_repo: SavedMessageRepository,
        message_repo: MessageRepository,
        channel_repo: ChannelRepository,
        forum_repo: ForumPostRepository,
        conversation_repo: ConversationRepository,
        user_repo: UserRepository,
        access: AccessPolicy,
    ) -> None:
        self._saved_repo = saved_repo
        self._message_repo = message_repo
        self._channel_repo = channel_repo
        self._forum_repo = forum_repo
        self._conversation_repo = conversation_repo
        self._user_repo = user_repo
        self._access = access

    async def _home_channel(self, message: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if message.get("channel_id"):
            return await self._channel_repo.get(message["channel_id"])
        if message.get("forum_post_id"):
            post = await self._forum_repo.get(message["forum_post_id"])
            return await self._channel_repo.get(post["channel_id"]) if post else None
        return None

    async def _can_see(self, message: Dict[str, Any], user_id: str) -> bool:
        if message.get("conversation_id"):
            conversation = await self._conversation_repo.get(message["conversation_id"])
            return bool(conversation) and is_participant(conversation, user_id)
        channel = await self._home_channel(message)
        if not channel or channel.get("deleting"):
            return False
        membership = await self._access.membership(channel["organization_id"], user_id)
        return await self._access.can_access_channel(channel, membership, user_id)

    async def save_message(self, message_id: str, user_id: Optional[str]) -> Dict[str, bool]:
        if not user_id:
            raise NotAuthenticated()
        oid = to_object_id(message_id)
        message = await self._message_repo.get(oid) if oid else None
        if not message or not await self._can_see(message, user_id):
            raise NotFound("Message not found")
        created = await self._saved_repo.save(user_id, message["_id"])
        return {"saved": True, "already_saved": not created}

    async def unsave_message(self, message_id: str, user_id: Optional[str]) -> Dict[str, bool]:
        if not user_id:
            raise NotAuthenticated()
        oid = to_object_id(message_id)
        removed = await self._saved_repo.unsave(user_id, oid) if oid else False
        return {"saved": False, "was_saved": removed}

    async def list_saved(self, user_id: Optional[str], limit: int = 50) -> List[Dict[str, Any]]:
        if not user_id:
            return []
        items: List[Dict[str, Any]] = []
        for saved in await self._saved_repo.list_for_user(user_id, limit):
            message = await self._message_repo.get(saved["message_id"])
            # bookmarks outlive access: hide what the caller can no longer see
            if not message or not await self._can_see(message, user_id):
                continue
            channel = await self._home_channel(message)
            items.append(
                {
                    "_id": message["_id"],
                    "saved_message_id": saved["_id"],
                    "content": message["content"],
                    "created_at": message["created_at"],
                    "saved_at": saved["saved_at"],
                    "channel_id": message.get("channel_id"),
                    "conversation_id": message.get("conversation_id"),
                    "forum_post_id": message.get("forum_post_id"),
                    "channel_name": channel["name"] if channel else None,
                    "sender": sender_summary(await self._user_repo.get_by_external_id(message["user_id"])),
                }
            )
        return serialize(items)

import logging
from typing import Any, Dict, List, Optional, Tuple

from portal.errors import InvalidRequest, NotAuthorized, NotFound
from portal.models.message import EVERYONE
from portal.repositories.channel_repository import ChannelRepository
from portal.repositories.message_repository import MessageRepository
from portal.repositories.organization_repository import OrganizationRepository
from portal.services.access import AccessPolicy, is_admin
from portal.services.notifier import Notifier
from portal.utils.clock import now_ms
from portal.utils.ids import serialize, to_object_id
from portal.utils.realtime_bus import org_topic, publish_event, user_topic


logger = logging.getLogger(__name__)

TYPING_EXPIRY_MS = 3000


async def clean_mentions(org_repo: OrganizationRepository, organization_id, mentions: List[str]) -> List[str]:
    """Keep organization members and the everyone sentinel, in order, without duplicates."""
    if not mentions:
        return []
    members = set(await org_repo.member_ids(organization_id))
    cleaned: List[str] = []
    for mention in mentions:
        if mention in cleaned:
            continue
        if mention == EVERYONE or mention in members:
            cleaned.append(mention)
    return cleaned


class MessageService:

    def __init__(self, message_repo: MessageRepository, channel_repo: ChannelRepository, org_repo: OrganizationRepository, access: AccessPolicy, notifier: Notifier) -> None:
        self._message_repo = message_repo
        self._channel_repo = channel_repo
        self._org_repo = org_repo
        self._access = access
        self._notifier = notifier

    async def _channel_access(self, channel_id: str, user_id: Optional[str]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        oid = to_object_id(channel_id)
        channel = await self._channel_repo.get(oid) if oid else None
        if not channel or channel.get("deleting"):
            raise NotFound("Channel not found")
        membership = await self._access.require_member(channel["organization_id"], user_id)
        if not await self._access.can_access_channel(channel, membership, user_id):
            raise NotAuthorized("You do not have access to this channel")
        return channel, membership

    async def send_channel_message(self, channel_id: str, content: str, user_id: Optional[str], mentions: Optional[List[str]] = None, parent_message_id: Optional[str] = None) -> Dict[str, Any]:
        channel, membership = await self._channel_access(channel_id, user_id)
        if channel.get("permissions") == "readOnly" and not is_admin(membership):
            raise NotAuthorized("Only admins can post in this read-only channel")
        if not content or not content.strip():
            raise InvalidRequest("Message content cannot be empty")

        cleaned = await clean_mentions(self._org_repo, channel["organization_id"], mentions or [])
        saved = await self._message_repo.save_message(
            user_id=user_id,
            content=content.strip(),
            channel_id=channel["_id"],
            mentions=cleaned,
            parent_message_id=to_object_id(parent_message_id) if parent_message_id else None,
        )
        await self._message_repo.clear_typing(channel["_id"], user_id)

        message = serialize(saved)
        await publish_event(org_topic(channel["organization_id"]), {"type": "message", "channel_id": str(channel["_id"]), "message_id": message["_id"]})
        await self._notify_mentions(channel, saved)
        return message

    async def _notify_mentions(self, channel: Dict[str, Any], message: Dict[str, Any]) -> None:
        mentions = message.get("mentions") or []
        if not mentions:
            return
        if EVERYONE in mentions:
            candidates = set(await self._org_repo.member_ids(channel["organization_id"]))
        else:
            candidates = set(mentions)
        candidates.discard(message["user_id"])
        recipients = set()
        for candidate in candidates:
            membership = await self._access.membership(channel["organization_id"], candidate)
            if await self._access.can_access_channel(channel, membership, candidate):
                recipients.add(candidate)
        for recipient in recipients:
            await publish_event(user_topic(recipient), {"type": "mention", "channel_id": str(channel["_id"]), "message_id": str(message["_id"])})
        await self._notifier.push(
            recipients,
            title=f"#{channel['name']}",
            body=message["content"][:100],
            data={"type": "mention", "channel_id": str(channel["_id"]), "message_id": str(message["_id"])},
        )

    async def list_channel_messages(self, channel_id: str, user_id: Optional[str], limit: int = 50, cursor: Optional[str] = None) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        oid = to_object_id(channel_id)
        channel = await self._channel_repo.get(oid) if oid else None
        if not channel or channel.get("deleting"):
            return [], None
        membership = await self._access.membership(channel["organization_id"], user_id)
        if not await self._access.can_access_channel(channel, membership, user_id):
            return [], None
        items, next_cursor = await self._message_repo.page("channel_id", channel["_id"], limit=limit, cursor=cursor)
        return serialize(items), next_cursor

    async def _owned_message(self, message_id: str, user_id: Optional[str], action: str) -> Dict[str, Any]:
        oid = to_object_id(message_id)
        message = await self._message_repo.get(oid) if oid else None
        if not message or not message.get("channel_id"):
            raise NotFound("Message not found")
        channel, membership = await self._channel_access(str(message["channel_id"]), user_id)
        if message["user_id"] != user_id and not is_admin(membership):
            raise NotAuthorized(f"Only message owner or admins can {action} messages")
        message["organization_id"] = channel["organization_id"]
        return message

    async def edit_message(self, message_id: str, content: str, user_id: Optional[str]) -> Dict[str, Any]:
        message = await self._owned_message(message_id, user_id, "edit")
        if not content or not content.strip():
            raise InvalidRequest("Message content cannot be empty")
        await self._message_repo.update_content(message["_id"], content.strip())
        await publish_event(org_topic(message["organization_id"]), {"type": "message_edited", "message_id": str(message["_id"])})
        return {"_id": str(message["_id"]), "content": content.strip()}

    async def delete_message(self, message_id: str, user_id: Optional[str]) -> Dict[str, bool]:
        message = await self._owned_message(message_id, user_id, "delete")
        await self._message_repo.delete(message["_id"])
        await publish_event(org_topic(message["organization_id"]), {"type": "message_deleted", "message_id": str(message["_id"])})
        return {"success": True}

    async def set_typing(self, channel_id: str, user_id: Optional[str]) -> None:
        channel, _ = await self._channel_access(channel_id, user_id)
        await self._message_repo.set_typing(channel["_id"], user_id)

    async def clear_typing(self, channel_id: str, user_id: Optional[str]) -> None:
        channel, _ = await self._channel_access(channel_id, user_id)
        await self._message_repo.clear_typing(channel["_id"], user_id)

    async def typing_users(self, channel_id: str, user_id: Optional[str]) -> List[str]:
        oid = to_object_id(channel_id)
        channel = await self._channel_repo.get(oid) if oid else None
        if not channel or channel.get("deleting"):
            return []
        membership = await self._access.membership(channel["organization_id"], user_id)
        if not await self._access.can_access_channel(channel, membership, user_id):
            return []
        rows = await self._message_repo.typing_since(channel["_id"], now_ms() - TYPING_EXPIRY_MS)
        return [row["user_id"] for row in rows if row["user_id"] != user_id]

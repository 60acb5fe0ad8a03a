import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId

from portal.config import get_settings
from portal.errors import NotAuthenticated, NotFound
from portal.models.message import EVERYONE
from portal.repositories.category_repository import CategoryRepository
from portal.repositories.channel_repository import ChannelRepository
from portal.repositories.conversation_repository import ConversationRepository
from portal.repositories.inbox_repository import InboxRepository
from portal.repositories.message_repository import MessageRepository
from portal.repositories.mute_repository import MuteRepository
from portal.repositories.saved_repository import SavedMessageRepository
from portal.repositories.user_repository import UserRepository
from portal.services.access import AccessPolicy
from portal.utils.clock import now_ms
from portal.utils.ids import serialize, to_object_id


logger = logging.getLogger(__name__)

INBOX_SUMMARY_LIMIT = 25
SAVED_SCAN_LIMIT = 20


def is_mention_of(message: Dict[str, Any], user_id: str) -> bool:
    """A message mentions a user when it names them or everyone."""
    mentions = message.get("mentions") or []
    return user_id in mentions or EVERYONE in mentions


def display_name(profile: Optional[Dict[str, Any]]) -> str:
    if not profile:
        return "Unknown"
    name = " ".join(part for part in (profile.get("first_name"), profile.get("last_name")) if part)
    return name or "Unknown"


def sender_summary(profile: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not profile:
        return None
    return {
        "first_name": profile.get("first_name"),
        "last_name": profile.get("last_name"),
        "image_url": profile.get("image_url"),
    }


class MentionService:
    """Inbox aggregation: mentions across a workspace's channels plus unread DMs.

    Every query scans a bounded window of the most recent messages per
    channel, skipping channels the caller muted or cannot see. A mention is
    unread when it has no read receipt and was created after the caller's
    inbox watermark for the workspace.
    """

    def __init__(
        self,
        channel_repo: ChannelRepository,
        category_repo: CategoryRepository,
        message_repo: MessageRepository,
        mute_repo: MuteRepository,
        inbox_repo: InboxRepository,
        user_repo: UserRepository,
        conversation_repo: ConversationRepository,
        saved_repo: SavedMessageRepository,
        access: AccessPolicy,
    ) -> None:
        self._channel_repo = channel_repo
        self._category_repo = category_repo
        self._message_repo = message_repo
        self._mute_repo = mute_repo
        self._inbox_repo = inbox_repo
        self._user_repo = user_repo
        self._conversation_repo = conversation_repo
        self._saved_repo = saved_repo
        self._access = access

    async def _scan(self, organization_id: str, user_id: Optional[str], window: int) -> Optional[Dict[str, Any]]:
        org_oid = to_object_id(organization_id)
        membership = await self._access.membership(org_oid, user_id)
        if membership is None:
            return None

        channels = await self._channel_repo.list_for_organization(org_oid)
        muted = await self._mute_repo.muted_channel_ids(user_id)
        visible = await self._access.accessible_channel_ids(channels, membership, user_id)
        active = [c for c in channels if c["_id"] in visible and c["_id"] not in muted]

        mentions: List[Dict[str, Any]] = []
        for channel in active:
            for message in await self._message_repo.recent_in_channel(channel["_id"], window):
                if is_mention_of(message, user_id):
                    mentions.append(message)

        read_ids = await self._inbox_repo.read_message_ids(user_id, [m["_id"] for m in mentions])
        cleared_at = await self._inbox_repo.cleared_at(user_id, org_oid)
        for message in mentions:
            message["is_read"] = message["_id"] in read_ids or message["created_at"] <= cleared_at
        mentions.sort(key=lambda m: (m["created_at"], m["_id"]), reverse=True)
        return {
            "organization_id": org_oid,
            "mentions": mentions,
            "channels": {c["_id"]: c for c in channels},
        }

    async def _enrich(self, organization_id: ObjectId, mentions: List[Dict[str, Any]], channels: Dict[ObjectId, Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not mentions:
            return []
        profiles = await self._user_repo.get_many_by_external_id(m["user_id"] for m in mentions)
        categories = {c["_id"]: c for c in await self._category_repo.list_for_organization(organization_id)}
        items = []
        for message in mentions:
            channel = channels.get(message.get("channel_id")) or {}
            category = categories.get(channel.get("category_id")) or {}
            profile = profiles.get(message["user_id"])
            items.append(
                {
                    "_id": message["_id"],
                    "content": message["content"],
                    "created_at": message["created_at"],
                    "channel_id": message.get("channel_id"),
                    "channel_name": channel.get("name"),
                    "category_id": channel.get("category_id"),
                    "category_name": category.get("name"),
                    "is_read": message["is_read"],
                    "everyone": EVERYONE in (message.get("mentions") or []),
                    "sender_id": message["user_id"],
                    "sender": sender_summary(profile),
                }
            )
        return serialize(items)

    async def recent_mentions(self, organization_id: str, user_id: Optional[str]) -> List[Dict[str, Any]]:
        settings = get_settings()
        scan = await self._scan(organization_id, user_id, settings.mention_recent_window)
        if scan is None:
            return []
        recent = scan["mentions"][: settings.recent_mentions_limit]
        return await self._enrich(scan["organization_id"], recent, scan["channels"])

    async def recent_saved_messages(self, organization_id: str, user_id: Optional[str]) -> List[Dict[str, Any]]:
        """Newest saved messages of the caller that belong to this workspace's visible channels."""
        org_oid = to_object_id(organization_id)
        membership = await self._access.membership(org_oid, user_id)
        if membership is None:
            return []
        channels = {c["_id"]: c for c in await self._channel_repo.list_for_organization(org_oid)}
        visible = await self._access.accessible_channel_ids(channels.values(), membership, user_id)
        limit = get_settings().recent_saved_limit

        items: List[Dict[str, Any]] = []
        for saved in await self._saved_repo.list_for_user(user_id, SAVED_SCAN_LIMIT):
            if len(items) >= limit:
                break
            message = await self._message_repo.get(saved["message_id"])
            if not message or message.get("channel_id") not in visible:
                continue
            items.append(
                {
                    "_id": message["_id"],
                    "saved_message_id": saved["_id"],
                    "content": message["content"],
                    "created_at": message["created_at"],
                    "saved_at": saved["saved_at"],
                    "channel_id": message["channel_id"],
                    "channel_name": channels[message["channel_id"]]["name"],
                    "sender": sender_summary(await self._user_repo.get_by_external_id(message["user_id"])),
                }
            )
        return serialize(items)

    async def all_mentions(self, organization_id: str, user_id: Optional[str], unread_only: bool = False) -> List[Dict[str, Any]]:
        scan = await self._scan(organization_id, user_id, get_settings().mention_all_window)
        if scan is None:
            return []
        mentions = scan["mentions"]
        if unread_only:
            mentions = [m for m in mentions if not m["is_read"]]
        return await self._enrich(scan["organization_id"], mentions, scan["channels"])

    async def unread_mention_count(self, organization_id: str, user_id: Optional[str]) -> int:
        scan = await self._scan(organization_id, user_id, get_settings().mention_recent_window)
        if scan is None:
            return 0
        return sum(1 for m in scan["mentions"] if not m["is_read"])

    async def unread_dm_count(self, user_id: Optional[str]) -> int:
        if not user_id:
            return 0
        conversations = await self._conversation_repo.list_for_user(user_id)
        markers = await self._conversation_repo.read_markers(user_id)
        return sum(1 for c in conversations if c.get("last_message_at", 0) > markers.get(c["_id"], 0))

    async def unread_counts(self, organization_id: str, user_id: Optional[str]) -> Dict[str, int]:
        org_oid = to_object_id(organization_id)
        if await self._access.membership(org_oid, user_id) is None:
            return {"mentions": 0, "direct_messages": 0}
        return {
            "mentions": await self.unread_mention_count(organization_id, user_id),
            "direct_messages": await self.unread_dm_count(user_id),
        }

    async def mark_all_mentions_read(self, organization_id: str, user_id: Optional[str]) -> Dict[str, int]:
        if not user_id:
            raise NotAuthenticated()
        scan = await self._scan(organization_id, user_id, get_settings().mention_recent_window)
        if scan is None:
            return {"marked": 0}
        marked = 0
        for message in scan["mentions"]:
            if not message["is_read"] and await self._inbox_repo.mark_read(user_id, message["_id"]):
                marked += 1
        return {"marked": marked}

    async def mark_mention_read(self, message_id: str, user_id: Optional[str]) -> Dict[str, bool]:
        if not user_id:
            raise NotAuthenticated()
        oid = to_object_id(message_id)
        message = await self._message_repo.get(oid) if oid else None
        channel = await self._channel_repo.get(message["channel_id"]) if message and message.get("channel_id") else None
        if channel is None:
            raise NotFound("Message not found")
        membership = await self._access.membership(channel["organization_id"], user_id)
        if not await self._access.can_access_channel(channel, membership, user_id):
            raise NotFound("Message not found")
        created = await self._inbox_repo.mark_read(user_id, message["_id"])
        return {"read": True, "already_read": not created}

    async def clear_inbox(self, organization_id: str, user_id: Optional[str]) -> Dict[str, Optional[int]]:
        if not user_id:
            raise NotAuthenticated()
        org_oid = to_object_id(organization_id)
        if await self._access.membership(org_oid, user_id) is None:
            return {"cleared_at": None}
        cleared_at = now_ms()
        await self._inbox_repo.set_cleared_at(user_id, org_oid, cleared_at)
        logger.info("inbox cleared for %s in %s", user_id, org_oid)
        return {"cleared_at": cleared_at}

    async def inbox_summary(self, organization_id: str, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        scan = await self._scan(organization_id, user_id, get_settings().mention_all_window)
        if scan is None:
            return None
        unread = [m for m in scan["mentions"] if not m["is_read"]]
        profiles = await self._user_repo.get_many_by_external_id(m["user_id"] for m in unread)
        mentions = [
            {
                "type": "mention",
                "author": display_name(profiles.get(m["user_id"])),
                "content": m["content"],
                "channel_name": (scan["channels"].get(m.get("channel_id")) or {}).get("name") or "Unknown",
                "created_at": m["created_at"],
            }
            for m in unread
        ]

        dms: List[Dict[str, Any]] = []
        markers = await self._conversation_repo.read_markers(user_id)
        for conversation in await self._conversation_repo.list_for_user(user_id):
            since = markers.get(conversation["_id"], 0)
            if conversation.get("last_message_at", 0) <= since:
                continue
            messages = await self._message_repo.in_conversation_since(conversation["_id"], since, exclude_user_id=user_id)
            if not messages:
                continue
            other_id = conversation["participant_2_id"] if conversation["participant_1_id"] == user_id else conversation["participant_1_id"]
            author = display_name(await self._user_repo.get_by_external_id(other_id))
            for message in messages:
                dms.append(
                    {
                        "type": "dm",
                        "author": author,
                        "content": message["content"],
                        "created_at": message["created_at"],
                        "unread_count": len(messages),
                    }
                )
        dms.sort(key=lambda d: d["created_at"], reverse=True)
        return {
            "mentions": mentions[:INBOX_SUMMARY_LIMIT],
            "dms": dms[:INBOX_SUMMARY_LIMIT],
            "total_mentions": len(mentions),
            "total_dms": len(dms),
        }

import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId

from portal.errors import Conflict, NotAuthorized, NotFound
from portal.repositories.category_repository import CategoryRepository
from portal.repositories.channel_repository import ChannelRepository
from portal.repositories.mute_repository import MuteRepository
from portal.services.access import AccessPolicy
from portal.utils.ids import serialize, to_object_id
from portal.utils.realtime_bus import org_topic, publish_event


logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")

CHANNEL_FIELDS = ("name", "description", "icon", "permissions")


def normalize_channel_name(name: str) -> str:
    return _WHITESPACE.sub("-", name.strip().lower())


class DirectoryService:
    """Category/channel tree of a workspace: listing, ordering, membership and mutes."""

    def __init__(self, category_repo: CategoryRepository, channel_repo: ChannelRepository, mute_repo: MuteRepository, access: AccessPolicy) -> None:
        self._category_repo = category_repo
        self._channel_repo = channel_repo
        self._mute_repo = mute_repo
        self._access = access

    # --- lookups ---

    async def _category_or_404(self, category_id: str) -> Dict[str, Any]:
        oid = to_object_id(category_id)
        category = await self._category_repo.get(oid) if oid else None
        if not category:
            raise NotFound("Category not found")
        return category

    async def _channel_or_404(self, channel_id: str) -> Dict[str, Any]:
        oid = to_object_id(channel_id)
        channel = await self._channel_repo.get(oid) if oid else None
        if not channel or channel.get("deleting"):
            raise NotFound("Channel not found")
        return channel

    async def _notify(self, organization_id: ObjectId, event_type: str, **fields: Any) -> None:
        await publish_event(org_topic(organization_id), {"type": event_type, **serialize(fields)})

    # --- read ---

    async def list_directory(self, organization_id: str, user_id: Optional[str]) -> List[Dict[str, Any]]:
        org_oid = to_object_id(organization_id)
        membership = await self._access.membership(org_oid, user_id)
        if membership is None:
            return []

        categories = await self._category_repo.list_for_organization(org_oid)
        channels = await self._channel_repo.list_for_organization(org_oid)
        visible = await self._access.accessible_channel_ids(channels, membership, user_id)

        by_category: Dict[ObjectId, List[Dict[str, Any]]] = {}
        for channel in channels:
            if channel["_id"] in visible:
                by_category.setdefault(channel["category_id"], []).append(channel)

        tree = []
        for category in sorted(categories, key=lambda c: c["order"]):
            members = sorted(by_category.get(category["_id"], []), key=lambda c: c["order"])
            tree.append({**category, "channels": members})
        return serialize(tree)

    async def get_channel(self, channel_id: str, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        oid = to_object_id(channel_id)
        channel = await self._channel_repo.get(oid) if oid else None
        if not channel or channel.get("deleting"):
            return None
        membership = await self._access.membership(channel["organization_id"], user_id)
        if not await self._access.can_access_channel(channel, membership, user_id):
            return None
        return serialize(channel)

    async def get_channel_members(self, channel_id: str, user_id: Optional[str]) -> List[Dict[str, Any]]:
        channel = await self.get_channel(channel_id, user_id)
        if channel is None or not channel.get("is_private"):
            return []
        return serialize(await self._channel_repo.list_members(ObjectId(channel["_id"])))

    # --- categories ---

    async def create_category(self, organization_id: str, name: str, user_id: Optional[str]) -> Dict[str, Any]:
        org_oid = to_object_id(organization_id)
        await self._access.require_admin(org_oid, user_id)
        category = await self._category_repo.create(org_oid, name.strip())
        logger.info("category %s created in %s", category["_id"], org_oid)
        await self._notify(org_oid, "category_created", category_id=category["_id"])
        return serialize(category)

    async def update_category(self, category_id: str, fields: Dict[str, Any], user_id: Optional[str]) -> Dict[str, Any]:
        category = await self._category_or_404(category_id)
        await self._access.require_admin(category["organization_id"], user_id)
        updates: Dict[str, Any] = {}
        if fields.get("name") is not None:
            updates["name"] = fields["name"].strip()
        await self._category_repo.update_fields(category["_id"], updates)
        await self._notify(category["organization_id"], "category_updated", category_id=category["_id"])
        return serialize({**category, **updates})

    async def delete_category(self, category_id: str, user_id: Optional[str]) -> None:
        category = await self._category_or_404(category_id)
        await self._access.require_admin(category["organization_id"], user_id)
        remaining = await self._channel_repo.count_in_category(category["_id"])
        if remaining:
            raise Conflict("Category still has channels; move or delete them first")
        await self._category_repo.delete(category["_id"])
        # keep sibling order contiguous
        siblings = await self._category_repo.list_for_organization(category["organization_id"])
        for index, sibling in enumerate(siblings):
            if sibling["order"] != index:
                await self._category_repo.set_order(sibling["_id"], category["organization_id"], index)
        logger.info("category %s deleted", category["_id"])
        await self._notify(category["organization_id"], "category_deleted", category_id=category["_id"])

    async def reorder_categories(self, organization_id: str, category_ids: Iterable[str], user_id: Optional[str]) -> None:
        org_oid = to_object_id(organization_id)
        await self._access.require_admin(org_oid, user_id)
        for index, raw_id in enumerate(category_ids):
            oid = to_object_id(raw_id)
            if oid is not None:
                await self._category_repo.set_order(oid, org_oid, index)
        logger.info("categories reordered in %s", org_oid)
        await self._notify(org_oid, "categories_reordered")

    # --- channels ---

    async def create_channel(self, organization_id: str, payload: Dict[str, Any], user_id: Optional[str]) -> Dict[str, Any]:
        org_oid = to_object_id(organization_id)
        await self._access.require_admin(org_oid, user_id)
        category = await self._category_or_404(payload["category_id"])
        if category["organization_id"] != org_oid:
            raise NotFound("Category not found")

        is_private = bool(payload.get("is_private"))
        channel = await self._channel_repo.create(
            {
                "organization_id": org_oid,
                "category_id": category["_id"],
                "name": normalize_channel_name(payload["name"]),
                "description": payload.get("description"),
                "icon": payload.get("icon") or "Hash",
                "permissions": payload.get("permissions") or "open",
                "is_private": is_private,
                "channel_type": payload.get("channel_type") or "chat",
                "created_by": user_id,
            }
        )
        if is_private:
            # the creator is always kept so an admin cannot lock themselves out
            members = {user_id, *(payload.get("member_ids") or [])}
            await self._channel_repo.add_members(channel["_id"], sorted(members), added_by=user_id)
        logger.info("channel %s created in category %s", channel["_id"], category["_id"])
        await self._notify(org_oid, "channel_created", channel_id=channel["_id"])
        return serialize(channel)

    async def update_channel(self, channel_id: str, fields: Dict[str, Any], user_id: Optional[str]) -> Dict[str, Any]:
        """Apply only the supplied fields; privacy and membership are diffed."""
        channel = await self._channel_or_404(channel_id)
        await self._access.require_admin(channel["organization_id"], user_id)

        updates: Dict[str, Any] = {}
        for key in CHANNEL_FIELDS:
            if fields.get(key) is not None:
                updates[key] = fields[key]
        if "name" in updates:
            updates["name"] = normalize_channel_name(updates["name"])
        if fields.get("is_private") is not None:
            updates["is_private"] = bool(fields["is_private"])
        await self._channel_repo.update_fields(channel["_id"], updates)

        was_private = bool(channel.get("is_private"))
        now_private = updates.get("is_private", was_private)
        member_ids = fields.get("member_ids")
        if was_private and not now_private:
            removed = await self._channel_repo.clear_members(channel["_id"])
            logger.info("channel %s made public, %d memberships removed", channel["_id"], removed)
        elif now_private and (member_ids is not None or not was_private):
            await self._sync_members(channel["_id"], member_ids or [], user_id, keep_existing=member_ids is None)

        await self._notify(channel["organization_id"], "channel_updated", channel_id=channel["_id"])
        return serialize({**channel, **updates})

    async def _sync_members(self, channel_id: ObjectId, requested: Iterable[str], actor_id: str, keep_existing: bool = False) -> None:
        current = await self._channel_repo.member_ids(channel_id)
        wanted = set(requested) | {actor_id}
        if keep_existing:
            wanted |= current
        to_remove = current - wanted
        to_add = wanted - current
        await self._channel_repo.remove_members(channel_id, sorted(to_remove))
        await self._channel_repo.add_members(channel_id, sorted(to_add), added_by=actor_id)
        if to_add or to_remove:
            logger.info("channel %s membership: +%d -%d", channel_id, len(to_add), len(to_remove))

    async def delete_channel(self, channel_id: str, user_id: Optional[str]) -> Dict[str, int]:
        oid = to_object_id(channel_id)
        channel = await self._channel_repo.get(oid) if oid else None
        if not channel:
            raise NotFound("Channel not found")
        await self._access.require_admin(channel["organization_id"], user_id)

        # Each step is idempotent and the channel row goes last, so a retry
        # after a partial failure resumes the cleanup.
        await self._channel_repo.mark_deleting(channel["_id"])
        removed = await self._channel_repo.delete_dependents(channel["_id"])
        await self._channel_repo.delete(channel["_id"])
        await self._compact_category(channel["category_id"])
        logger.info("channel %s deleted: %s", channel["_id"], removed)
        await self._notify(channel["organization_id"], "channel_deleted", channel_id=channel["_id"])
        return removed

    async def reorder_channels(self, category_id: str, channel_ids: Iterable[str], user_id: Optional[str]) -> None:
        category = await self._category_or_404(category_id)
        org_oid = category["organization_id"]
        await self._access.require_admin(org_oid, user_id)
        sources = set()
        for index, raw_id in enumerate(channel_ids):
            oid = to_object_id(raw_id)
            channel = await self._channel_repo.get(oid) if oid else None
            if channel is None or channel["organization_id"] != org_oid:
                continue
            await self._channel_repo.place(oid, org_oid, category["_id"], index)
            if channel["category_id"] != category["_id"]:
                sources.add(channel["category_id"])
        for source_id in sources:
            await self._compact_category(source_id)
        logger.info("channels reordered in category %s", category["_id"])
        await self._notify(org_oid, "channels_reordered", category_id=category["_id"])

    async def move_channel(self, channel_id: str, target_category_id: str, new_order: int, user_id: Optional[str]) -> Dict[str, Any]:
        channel = await self._channel_or_404(channel_id)
        org_oid = channel["organization_id"]
        await self._access.require_admin(org_oid, user_id)
        target = await self._category_or_404(target_category_id)
        if target["organization_id"] != org_oid:
            raise NotFound("Category not found")

        source_id = channel["category_id"]
        siblings = [c for c in await self._channel_repo.list_for_category(target["_id"]) if c["_id"] != channel["_id"]]
        position = max(0, min(new_order, len(siblings)))

        await self._channel_repo.place(channel["_id"], org_oid, target["_id"], position)
        # single pass: everything at or after the insertion point moves up one
        for index, sibling in enumerate(siblings):
            wanted = index if index < position else index + 1
            if sibling["order"] != wanted:
                await self._channel_repo.set_order(sibling["_id"], wanted)
        if source_id != target["_id"]:
            await self._compact_category(source_id)

        logger.info("channel %s moved to category %s at %d", channel["_id"], target["_id"], position)
        await self._notify(org_oid, "channel_moved", channel_id=channel["_id"], category_id=target["_id"])
        return serialize({**channel, "category_id": target["_id"], "order": position})

    async def _compact_category(self, category_id: ObjectId) -> None:
        for index, sibling in enumerate(await self._channel_repo.list_for_category(category_id)):
            if sibling["order"] != index:
                await self._channel_repo.set_order(sibling["_id"], index)

    # --- mutes ---

    async def _channel_for_mute(self, channel_id: str, user_id: Optional[str]) -> Dict[str, Any]:
        channel = await self._channel_or_404(channel_id)
        membership = await self._access.require_member(channel["organization_id"], user_id)
        if not await self._access.can_access_channel(channel, membership, user_id):
            raise NotAuthorized("You do not have access to this channel")
        return channel

    async def mute_channel(self, channel_id: str, user_id: Optional[str]) -> Dict[str, Any]:
        channel = await self._channel_for_mute(channel_id, user_id)
        created = await self._mute_repo.mute(user_id, channel["_id"])
        return {"muted": True, "already_muted": not created}

    async def unmute_channel(self, channel_id: str, user_id: Optional[str]) -> Dict[str, Any]:
        channel = await self._channel_for_mute(channel_id, user_id)
        removed = await self._mute_repo.unmute(user_id, channel["_id"])
        return {"muted": False, "was_muted": removed}

    async def toggle_mute(self, channel_id: str, user_id: Optional[str]) -> Dict[str, Any]:
        channel = await self._channel_for_mute(channel_id, user_id)
        if await self._mute_repo.is_muted(user_id, channel["_id"]):
            await self._mute_repo.unmute(user_id, channel["_id"])
            return {"muted": False}
        await self._mute_repo.mute(user_id, channel["_id"])
        return {"muted": True}

    async def get_mute_status(self, channel_id: str, user_id: Optional[str]) -> Dict[str, Any]:
        oid = to_object_id(channel_id)
        if oid is None or not user_id:
            return {"muted": False}
        return {"muted": await self._mute_repo.is_muted(user_id, oid)}

    async def list_muted_channels(self, organization_id: str, user_id: Optional[str]) -> List[str]:
        org_oid = to_object_id(organization_id)
        membership = await self._access.membership(org_oid, user_id)
        if membership is None:
            return []
        muted = await self._mute_repo.muted_channel_ids(user_id)
        channels = await self._channel_repo.list_for_organization(org_oid)
        return [str(c["_id"]) for c in channels if c["_id"] in muted]

from typing import Any, Dict, List, Optional, Tuple

from portal.errors import InvalidRequest, NotAuthenticated, NotAuthorized, NotFound
from portal.repositories.conversation_repository import ConversationRepository
from portal.repositories.message_repository import MessageRepository
from portal.repositories.user_repository import UserRepository
from portal.services.notifier import Notifier
from portal.utils.ids import serialize, to_object_id
from portal.utils.realtime_bus import publish_event, user_topic


def other_participant(conversation: Dict[str, Any], user_id: str) -> str:
    if conversation["participant_1_id"] == user_id:
        return conversation["participant_2_id"]
    return conversation["participant_1_id"]


def is_participant(conversation: Dict[str, Any], user_id: Optional[str]) -> bool:
    return bool(user_id) and user_id in (conversation["participant_1_id"], conversation["participant_2_id"])


def _public_profile(profile: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not profile:
        return None
    return {
        "external_id": profile["external_id"],
        "first_name": profile.get("first_name"),
        "last_name": profile.get("last_name"),
        "image_url": profile.get("image_url"),
    }


class ChatService:
    """Direct (two-person) conversations."""

    def __init__(self, message_repo: MessageRepository, conversation_repo: ConversationRepository, user_repo: UserRepository, notifier: Notifier) -> None:
        self._message_repo = message_repo
        self._conversation_repo = conversation_repo
        self._user_repo = user_repo
        self._notifier = notifier

    async def _participant_conversation(self, conversation_id: str, user_id: Optional[str]) -> Dict[str, Any]:
        if not user_id:
            raise NotAuthenticated()
        oid = to_object_id(conversation_id)
        conversation = await self._conversation_repo.get(oid) if oid else None
        if not conversation:
            raise NotFound("Conversation not found")
        if not is_participant(conversation, user_id):
            raise NotAuthorized("Not a participant in this conversation")
        return conversation

    async def get_or_create_conversation(self, user_id: Optional[str], other_user_id: str) -> Dict[str, Any]:
        if not user_id:
            raise NotAuthenticated()
        if user_id == other_user_id:
            raise InvalidRequest("Cannot create conversation with yourself")
        conversation, _ = await self._conversation_repo.get_or_create_one_to_one(user_id, other_user_id)
        return serialize(conversation)

    async def send_direct_message(self, conversation_id: str, content: str, user_id: Optional[str], mentions: Optional[List[str]] = None) -> Dict[str, Any]:
        conversation = await self._participant_conversation(conversation_id, user_id)
        if not content or not content.strip():
            raise InvalidRequest("Message content cannot be empty")
        saved = await self._message_repo.save_message(
            user_id=user_id,
            content=content.strip(),
            conversation_id=conversation["_id"],
            mentions=mentions,
        )
        await self._conversation_repo.touch(conversation["_id"], saved["created_at"])
        # the sender has obviously read up to their own message
        await self._conversation_repo.mark_read(conversation["_id"], user_id, saved["created_at"])

        receiver_id = other_participant(conversation, user_id)
        ack = {"message_id": str(saved["_id"]), "conversation_id": str(conversation["_id"])}
        await publish_event(user_topic(receiver_id), {"type": "direct_message", "from": user_id, **ack})
        await self._notifier.push(
            [receiver_id],
            title="New message",
            body=saved["content"][:100],
            data={"type": "direct_message", "from": user_id, **ack},
        )
        return serialize(saved)

    async def get_conversation(self, conversation_id: str, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        oid = to_object_id(conversation_id)
        conversation = await self._conversation_repo.get(oid) if oid else None
        if not conversation or not is_participant(conversation, user_id):
            return None
        other = await self._user_repo.get_by_external_id(other_participant(conversation, user_id))
        return serialize({**conversation, "other_user": _public_profile(other)})

    async def list_conversations(self, user_id: Optional[str]) -> List[Dict[str, Any]]:
        if not user_id:
            return []
        conversations = await self._conversation_repo.list_for_user(user_id)
        markers = await self._conversation_repo.read_markers(user_id)
        profiles = await self._user_repo.get_many_by_external_id(other_participant(c, user_id) for c in conversations)
        items = []
        for conversation in conversations:
            other_id = other_participant(conversation, user_id)
            last = await self._message_repo.last_in_conversation(conversation["_id"])
            items.append(
                {
                    "_id": conversation["_id"],
                    "last_message_at": conversation.get("last_message_at"),
                    "other_user_id": other_id,
                    "other_user": _public_profile(profiles.get(other_id)),
                    "last_message_preview": last["content"][:100] if last else None,
                    "last_message_user_id": last["user_id"] if last else None,
                    "has_unread": conversation.get("last_message_at", 0) > markers.get(conversation["_id"], 0),
                }
            )
        return serialize(items)

    async def get_history(self, conversation_id: str, user_id: Optional[str], limit: int = 50, cursor: Optional[str] = None) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        oid = to_object_id(conversation_id)
        conversation = await self._conversation_repo.get(oid) if oid else None
        if not conversation or not is_participant(conversation, user_id):
            return [], None
        items, next_cursor = await self._message_repo.page("conversation_id", conversation["_id"], limit=limit, cursor=cursor)
        return serialize(items), next_cursor

    async def mark_read(self, conversation_id: str, user_id: Optional[str]) -> None:
        conversation = await self._participant_conversation(conversation_id, user_id)
        await self._conversation_repo.mark_read(conversation["_id"], user_id)

from typing import List, Optional, TypedDict

from bson import ObjectId


EVERYONE = "everyone"


class MessageDocument(TypedDict, total=False):
    _id: ObjectId
    # exactly one of channel_id / conversation_id / forum_post_id is set
    channel_id: Optional[ObjectId]
    conversation_id: Optional[ObjectId]
    forum_post_id: Optional[ObjectId]
    user_id: str
    content: str
    created_at: int
    edited_at: Optional[int]
    parent_message_id: Optional[ObjectId]
    mentions: List[str]


class TypingIndicatorDocument(TypedDict, total=False):
    _id: ObjectId
    channel_id: ObjectId
    user_id: str
    last_typing_at: int


class SavedMessageDocument(TypedDict, total=False):
    _id: ObjectId
    user_id: str
    message_id: ObjectId
    saved_at: int

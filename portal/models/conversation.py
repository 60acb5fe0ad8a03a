from typing import TypedDict

from bson import ObjectId


class ConversationDocument(TypedDict, total=False):
    _id: ObjectId
    # participant_1_id < participant_2_id
    participant_1_id: str
    participant_2_id: str
    created_at: int
    # unset until the first message
    last_message_at: int


class ConversationReadStatusDocument(TypedDict, total=False):
    _id: ObjectId
    conversation_id: ObjectId
    user_id: str
    last_read_at: int

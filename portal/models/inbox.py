from typing import TypedDict

from bson import ObjectId


class MentionReadStatusDocument(TypedDict, total=False):
    _id: ObjectId
    user_id: str
    message_id: ObjectId
    read_at: int


class InboxClearedAtDocument(TypedDict, total=False):
    _id: ObjectId
    user_id: str
    organization_id: ObjectId
    cleared_at: int

from typing import Literal, Optional, TypedDict

from bson import ObjectId


ChannelPermissions = Literal["open", "readOnly"]
ChannelType = Literal["chat", "forum"]


class ChannelCategoryDocument(TypedDict, total=False):
    _id: ObjectId
    organization_id: ObjectId
    name: str
    order: int
    created_at: int


class ChannelDocument(TypedDict, total=False):
    _id: ObjectId
    organization_id: ObjectId
    category_id: ObjectId
    name: str
    description: Optional[str]
    icon: str
    permissions: ChannelPermissions
    is_private: bool
    channel_type: ChannelType
    order: int
    created_at: int
    created_by: str
    # set while a cascading delete is in progress
    deleting: bool


class ChannelMemberDocument(TypedDict, total=False):
    _id: ObjectId
    channel_id: ObjectId
    user_id: str
    added_at: int
    added_by: str


class ChannelMuteDocument(TypedDict, total=False):
    _id: ObjectId
    user_id: str
    channel_id: ObjectId
    muted_at: int

from typing import Literal, TypedDict

from bson import ObjectId


PushPlatform = Literal["fcm", "webpush"]


class DeviceDocument(TypedDict, total=False):
    _id: ObjectId
    user_id: str
    platform: PushPlatform
    token: str
    last_seen_at: int

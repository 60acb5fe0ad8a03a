from typing import Literal, Optional, TypedDict

from bson import ObjectId


ForumPostStatus = Literal["open", "closed", "solved"]


class ForumPostDocument(TypedDict, total=False):
    _id: ObjectId
    channel_id: ObjectId
    title: str
    content: str
    author_id: str
    status: ForumPostStatus
    is_pinned: bool
    # accepted answer, only while status is "solved"
    solved_comment_id: Optional[ObjectId]
    created_at: int
    last_activity_at: int
    comment_count: int

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class ForumPostCreate(BaseModel):

    title: str = Field(min_length=1, max_length=200)
    content: str = ""


class ForumPostUpdate(BaseModel):

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = None


class ForumPostStatusUpdate(BaseModel):

    status: Literal["open", "closed", "solved"]


class SolvedComment(BaseModel):

    comment_id: str


class ForumCommentCreate(BaseModel):

    content: str
    mentions: List[str] = Field(default_factory=list)

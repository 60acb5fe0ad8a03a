from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class CategoryCreate(BaseModel):

    name: str = Field(min_length=1, max_length=80)


class CategoryUpdate(BaseModel):

    name: Optional[str] = Field(default=None, min_length=1, max_length=80)


class ChannelCreate(BaseModel):

    category_id: str
    name: str = Field(min_length=1, max_length=80)
    description: Optional[str] = None
    icon: str = "Hash"
    permissions: Literal["open", "readOnly"] = "open"
    is_private: bool = False
    member_ids: List[str] = Field(default_factory=list)
    channel_type: Literal["chat", "forum"] = "chat"


class ChannelUpdate(BaseModel):
    """Partial update: only fields present in the request body are applied."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=80)
    description: Optional[str] = None
    icon: Optional[str] = None
    permissions: Optional[Literal["open", "readOnly"]] = None
    is_private: Optional[bool] = None
    member_ids: Optional[List[str]] = None


class ReorderCategories(BaseModel):

    category_ids: List[str]


class ReorderChannels(BaseModel):

    channel_ids: List[str]


class MoveChannel(BaseModel):

    target_category_id: str
    new_order: int = Field(ge=0)

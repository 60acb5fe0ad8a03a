from typing import List, Optional

from pydantic import BaseModel, Field


class MessageCreate(BaseModel):

    content: str
    mentions: List[str] = Field(default_factory=list)
    parent_message_id: Optional[str] = None


class MessageEdit(BaseModel):

    content: str


class ConversationCreate(BaseModel):

    other_user_id: str

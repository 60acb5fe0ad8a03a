from typing import Literal, Optional

from pydantic import BaseModel, Field


class WorkspaceCreate(BaseModel):

    name: str = Field(min_length=1, max_length=80)
    slug: str = Field(min_length=2, max_length=48, pattern=r"^[a-z0-9][a-z0-9-]*$")
    description: Optional[str] = None
    is_public: bool = False
    logo_url: Optional[str] = None


class WorkspaceVisibility(BaseModel):

    is_public: bool


class MemberAdd(BaseModel):

    user_id: str
    role: Literal["admin", "member"] = "member"


class MemberRoleUpdate(BaseModel):

    role: Literal["admin", "member"]

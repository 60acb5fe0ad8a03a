from typing import Literal, Optional, TypedDict

from bson import ObjectId


OrganizationRole = Literal["admin", "member"]


class OrganizationDocument(TypedDict, total=False):
    _id: ObjectId
    name: str
    slug: str
    description: Optional[str]
    is_public: bool
    logo_url: Optional[str]
    created_by: str
    created_at: int


class OrganizationMemberDocument(TypedDict, total=False):
    _id: ObjectId
    organization_id: ObjectId
    user_id: str
    role: OrganizationRole
    joined_at: int

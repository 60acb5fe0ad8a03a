from typing import Optional, TypedDict

from bson import ObjectId


class UserDocument(TypedDict, total=False):

    _id: ObjectId
    # subject issued by the identity provider
    external_id: str
    email: str
    first_name: Optional[str]
    last_name: Optional[str]
    image_url: Optional[str]
    primary_workspace_id: Optional[ObjectId]
    updated_at: int

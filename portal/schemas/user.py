from typing import Optional

from pydantic import BaseModel, EmailStr


class Identity(BaseModel):
    """Caller identity resolved from the provider token."""

    user_id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image_url: Optional[str] = None


class ProfileSync(BaseModel):

    email: Optional[EmailStr] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image_url: Optional[str] = None


class PrimaryWorkspaceUpdate(BaseModel):

    organization_id: str

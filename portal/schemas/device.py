from typing import Literal

from pydantic import BaseModel, Field


class DeviceRegistration(BaseModel):

    platform: Literal["fcm", "webpush"] = "fcm"
    token: str = Field(min_length=1)

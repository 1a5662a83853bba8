from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from remindme.models.device import Platform


class DeviceRegister(BaseModel):
    device_identifier: str = Field(..., min_length=1, max_length=255)
    platform: Platform
    push_token: str = Field(..., min_length=1)
    device_name: Optional[str] = Field(None, max_length=255)
    app_version: Optional[str] = Field(None, max_length=20)
    os_version: Optional[str] = Field(None, max_length=20)


class DeviceResponse(BaseModel):
    # push_token is never echoed back
    id: int
    device_identifier: str
    platform: Platform
    device_name: Optional[str] = None
    app_version: Optional[str] = None
    os_version: Optional[str] = None
    last_seen_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

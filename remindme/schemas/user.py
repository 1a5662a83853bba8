from pydantic import BaseModel, ConfigDict, field_validator
from typing import Optional
from datetime import datetime
from remindme.utils.time_utils import as_utc


class UserResponse(BaseModel):
    id: int
    email: str
    display_name: Optional[str] = None
    created_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @field_validator("created_at", "deleted_at")
    @classmethod
    def datetimes_utc(cls, v):
        return as_utc(v) if v is not None else None

    model_config = ConfigDict(from_attributes=True)

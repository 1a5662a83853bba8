from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime


class ReminderListBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    color: Optional[str] = Field(None, max_length=20)
    icon: Optional[str] = Field(None, max_length=50)


class ReminderListCreate(ReminderListBase):
    # Appended after the user's existing lists when omitted
    sort_order: Optional[int] = None


class ReminderListUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    color: Optional[str] = Field(None, max_length=20)
    icon: Optional[str] = Field(None, max_length=50)
    sort_order: Optional[int] = None


class ReminderListReorder(BaseModel):
    list_ids: List[int] = Field(..., min_length=1)


class ReminderListResponse(ReminderListBase):
    id: int
    user_id: int
    sort_order: int = 0
    is_default: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


def list_snapshot(reminder_list) -> dict:
    return ReminderListResponse.model_validate(reminder_list).model_dump(mode="json")

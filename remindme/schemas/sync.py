from pydantic import BaseModel, ConfigDict, field_validator
from typing import Any, Dict, List, Optional
from datetime import datetime
from remindme.utils.time_utils import as_utc


class SyncEventResponse(BaseModel):
    id: int
    entity_type: str
    entity_id: int
    action: str
    payload: Optional[Dict[str, Any]] = None
    device_id: Optional[int] = None
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def created_at_utc(cls, v):
        return as_utc(v)

    model_config = ConfigDict(from_attributes=True)


class SyncChangesResponse(BaseModel):
    changes: List[SyncEventResponse]
    last_sync_at: Optional[datetime] = None
    has_more: bool
    next_cursor: Optional[datetime] = None

import enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional
from datetime import datetime
from remindme.models.reminder import ReminderStatus
from remindme.utils.time_utils import as_utc


def _utc_or_none(value: Optional[datetime]) -> Optional[datetime]:
    return as_utc(value) if value is not None else None


class Frequency(str, enum.Enum):
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class RecurrenceRule(BaseModel):
    """How a reminder repeats; clients expand the occurrences."""

    frequency: Frequency
    interval: int = Field(default=1, ge=1)
    days_of_week: Optional[List[int]] = None  # 0 = Sunday
    day_of_month: Optional[int] = Field(None, ge=1, le=31)
    month_of_year: Optional[int] = Field(None, ge=1, le=12)
    end_after_occurrences: Optional[int] = Field(None, ge=1)
    end_date: Optional[str] = None

    @field_validator("days_of_week")
    @classmethod
    def valid_weekdays(cls, v):
        if v is not None and any(day < 0 or day > 6 for day in v):
            raise ValueError("days_of_week must be between 0 and 6")
        return v


class ReminderBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    notes: Optional[str] = None
    priority: int = Field(default=2, ge=0, le=3)
    due_at: Optional[datetime] = None
    all_day: Optional[bool] = None
    recurrence_rule: Optional[RecurrenceRule] = None
    recurrence_end: Optional[datetime] = None
    is_alarm: bool = False
    sound_id: Optional[str] = Field(None, max_length=50)
    tags: List[str] = Field(default_factory=list)
    list_id: Optional[int] = None

    @field_validator("due_at", "recurrence_end")
    @classmethod
    def datetimes_utc(cls, v):
        # Clients without an offset are taken to mean UTC
        return _utc_or_none(v)


class ReminderCreate(ReminderBase):
    local_id: Optional[str] = Field(None, max_length=255)


class ReminderUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    notes: Optional[str] = None
    priority: Optional[int] = Field(None, ge=0, le=3)
    due_at: Optional[datetime] = None
    all_day: Optional[bool] = None
    recurrence_rule: Optional[RecurrenceRule] = None
    recurrence_end: Optional[datetime] = None
    status: Optional[ReminderStatus] = None
    is_alarm: Optional[bool] = None
    sound_id: Optional[str] = Field(None, max_length=50)
    tags: Optional[List[str]] = None
    list_id: Optional[int] = None
    expected_version: Optional[int] = None

    @field_validator("due_at", "recurrence_end")
    @classmethod
    def datetimes_utc(cls, v):
        return _utc_or_none(v)


class SnoozeRequest(BaseModel):
    minutes: int = Field(..., gt=0, le=60 * 24 * 7)


class ReminderResponse(BaseModel):
    id: int
    user_id: int
    list_id: Optional[int] = None
    title: str
    notes: Optional[str] = None
    priority: Optional[int] = None
    due_at: Optional[datetime] = None
    all_day: Optional[bool] = None
    recurrence_rule: Optional[RecurrenceRule] = None
    recurrence_end: Optional[datetime] = None
    status: ReminderStatus
    completed_at: Optional[datetime] = None
    snooze_count: int = 0
    is_alarm: bool = False
    sound_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    notification_sent_at: Optional[datetime] = None
    local_id: Optional[str] = None
    version: int
    last_modified_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @field_validator(
        "due_at",
        "recurrence_end",
        "completed_at",
        "notification_sent_at",
        "created_at",
        "updated_at",
        "deleted_at",
    )
    @classmethod
    def datetimes_utc(cls, v):
        return _utc_or_none(v)

    @field_validator("tags", mode="before")
    @classmethod
    def tags_default(cls, v):
        return v or []

    model_config = ConfigDict(from_attributes=True)


class ReminderPage(BaseModel):
    reminders: List[ReminderResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


def reminder_snapshot(reminder) -> dict:
    """JSON-safe copy of a reminder row for the sync log and live feed."""
    return ReminderResponse.model_validate(reminder).model_dump(mode="json")

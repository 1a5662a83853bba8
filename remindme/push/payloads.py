"""Typed push payloads.

Each data variant carries only its own fields and is flattened into the
provider's loose string map by ``to_wire()`` when a platform client builds
the request body.
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Union

from remindme.utils.time_utils import as_utc


class PushType(str, enum.Enum):
    REMINDER_DUE = "reminder_due"
    ALARM_DUE = "alarm_due"
    SYNC = "sync"
    CROSS_DEVICE_ACTION = "cross_device_action"


class CrossDeviceAction(str, enum.Enum):
    SNOOZE = "snooze"
    COMPLETE = "complete"
    DISMISS = "dismiss"
    DELETE = "delete"


REMINDER_CATEGORY = "REMINDER_ACTIONS"
ALARM_CATEGORY = "ALARM_ACTIONS"
DEFAULT_SOUND = "default"


@dataclass(frozen=True)
class ReminderDue:
    reminder_id: int
    due_at: Optional[datetime] = None
    sound_id: Optional[str] = None
    notes: Optional[str] = None

    type = PushType.REMINDER_DUE

    @property
    def is_alarm(self) -> bool:
        return False

    def to_wire(self) -> Dict[str, str]:
        data = {
            "type": self.type.value,
            "reminder_id": str(self.reminder_id),
            "is_alarm": "true" if self.is_alarm else "false",
        }
        if self.due_at is not None:
            data["due_at"] = self.due_at.isoformat()
        if self.sound_id:
            data["sound_id"] = self.sound_id
        if self.notes:
            data["notes"] = self.notes
        return data


@dataclass(frozen=True)
class AlarmDue(ReminderDue):
    type = PushType.ALARM_DUE

    @property
    def is_alarm(self) -> bool:
        return True


@dataclass(frozen=True)
class SyncRequested:
    type = PushType.SYNC

    def to_wire(self) -> Dict[str, str]:
        return {"type": self.type.value}


@dataclass(frozen=True)
class CrossDeviceActionData:
    reminder_id: int
    action: CrossDeviceAction

    type = PushType.CROSS_DEVICE_ACTION

    def to_wire(self) -> Dict[str, str]:
        return {
            "type": self.type.value,
            "action": self.action.value,
            "reminder_id": str(self.reminder_id),
        }


PushData = Union[ReminderDue, AlarmDue, SyncRequested, CrossDeviceActionData]


@dataclass(frozen=True)
class NotificationPayload:
    """User-visible notification: alert fields plus a typed data member."""

    title: str
    data: PushData
    body: str = ""
    sound: Optional[str] = DEFAULT_SOUND
    badge: Optional[int] = None
    category: Optional[str] = None
    extra: Dict[str, str] = field(default_factory=dict)

    def wire_data(self) -> Dict[str, str]:
        data = dict(self.extra)
        data.update(self.data.to_wire())
        return data


def is_urgent(data: PushData) -> bool:
    """Silent pushes that cancel alerts on other devices go out at high priority."""
    return data.type == PushType.CROSS_DEVICE_ACTION


def reminder_due_payload(reminder) -> NotificationPayload:
    """Build the due notification for a reminder row."""
    variant = AlarmDue if reminder.is_alarm else ReminderDue
    data = variant(
        reminder_id=reminder.id,
        due_at=as_utc(reminder.due_at) if reminder.due_at else None,
        sound_id=reminder.sound_id or None,
        notes=reminder.notes or None,
    )
    return NotificationPayload(
        title=reminder.title,
        body=reminder.notes or "",
        sound=reminder.sound_id or DEFAULT_SOUND,
        category=ALARM_CATEGORY if reminder.is_alarm else REMINDER_CATEGORY,
        data=data,
    )

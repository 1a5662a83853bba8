# Import all models so they're registered with Base.metadata
from remindme.models.user import User
from remindme.models.device import Device, Platform
from remindme.models.reminder_list import ReminderList
from remindme.models.reminder import Reminder, ReminderStatus
from remindme.models.sync_event import SyncEvent, SyncAction, EntityType

__all__ = [
    "User",
    "Device",
    "Platform",
    "ReminderList",
    "Reminder",
    "ReminderStatus",
    "SyncEvent",
    "SyncAction",
    "EntityType",
]

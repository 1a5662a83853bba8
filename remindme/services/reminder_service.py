import logging
import math
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from fastapi import HTTPException
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from remindme.models.reminder import Reminder, ReminderStatus
from remindme.models.reminder_list import ReminderList
from remindme.models.sync_event import EntityType, SyncAction, SyncEvent
from remindme.models.user import User
from remindme.schemas.reminder import (
    RecurrenceRule,
    ReminderCreate,
    ReminderUpdate,
    reminder_snapshot,
)
from remindme.services.sync_service import SyncService
from remindme.utils.time_utils import as_utc, utc_now

logger = logging.getLogger(__name__)


class ReminderService:
    """Reminder CRUD and actions; each mutation commits with its sync event."""

    def __init__(self, db: Session):
        self.db = db
        self.sync = SyncService(db)
        # Sync events committed by this service, for the propagator
        self.events: List[SyncEvent] = []

    def _commit_with_sync(
        self,
        reminder: Reminder,
        action: SyncAction,
        device_id: Optional[int],
    ) -> Reminder:
        try:
            # Flush first so the snapshot carries the new id and version
            self.db.flush()
            event = self.sync.record_change(
                user_id=reminder.user_id,
                entity_type=EntityType.REMINDER,
                entity_id=reminder.id,
                action=action,
                snapshot=reminder_snapshot(reminder),
                device_id=device_id,
            )
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            logger.info(f"Version conflict on {action.value} of reminder {reminder.id}")
            raise
        except Exception:
            self.db.rollback()
            logger.error(
                f"Failed to record {action.value} of reminder {reminder.id}", exc_info=True
            )
            raise
        self.db.refresh(reminder)
        self.events.append(event)
        return reminder

    def _check_list(self, user_id: int, list_id: Optional[int]) -> None:
        if list_id is None:
            return
        exists = (
            self.db.query(ReminderList.id)
            .filter(
                ReminderList.id == list_id,
                ReminderList.user_id == user_id,
                ReminderList.deleted_at.is_(None),
            )
            .first()
        )
        if not exists:
            raise HTTPException(status_code=404, detail="List not found")

    def create_reminder(
        self, user_id: int, reminder_data: ReminderCreate, device_id: Optional[int] = None
    ) -> Tuple[Reminder, bool]:
        """Create a reminder; returns ``(reminder, created)``.

        A retried create carrying the same ``local_id`` returns the
        existing row instead of adding a duplicate.
        """
        if reminder_data.local_id:
            existing = (
                self.db.query(Reminder)
                .filter(
                    Reminder.user_id == user_id,
                    Reminder.local_id == reminder_data.local_id,
                    Reminder.deleted_at.is_(None),
                )
                .first()
            )
            if existing:
                return existing, False

        self._check_list(user_id, reminder_data.list_id)
        values = reminder_data.model_dump()
        values["recurrence_rule"] = _rule_json(reminder_data.recurrence_rule)
        reminder = Reminder(
            user_id=user_id,
            status=ReminderStatus.ACTIVE,
            snooze_count=0,
            last_modified_by=device_id,
            **values,
        )
        self.db.add(reminder)
        return self._commit_with_sync(reminder, SyncAction.CREATE, device_id), True

    def get_reminder(self, user_id: int, reminder_id: int) -> Reminder:
        reminder = (
            self.db.query(Reminder)
            .filter(
                Reminder.id == reminder_id,
                Reminder.user_id == user_id,
                Reminder.deleted_at.is_(None),
            )
            .first()
        )
        if not reminder:
            raise HTTPException(status_code=404, detail="Reminder not found")
        return reminder

    def list_reminders(
        self,
        user_id: int,
        status: Optional[ReminderStatus] = None,
        list_id: Optional[int] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> dict:
        query = self.db.query(Reminder).filter(
            Reminder.user_id == user_id, Reminder.deleted_at.is_(None)
        )
        if status is not None:
            query = query.filter(Reminder.status == status)
        if list_id is not None:
            query = query.filter(Reminder.list_id == list_id)
        if from_date is not None:
            query = query.filter(Reminder.due_at >= as_utc(from_date))
        if to_date is not None:
            query = query.filter(Reminder.due_at <= as_utc(to_date))

        total = query.count()
        reminders = (
            query.order_by(
                Reminder.due_at.is_(None), Reminder.due_at.asc(), Reminder.created_at.desc()
            )
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {
            "reminders": reminders,
            "total": total,
            "page": page,
            "page_size": page_size,
            "total_pages": math.ceil(total / page_size) if total else 0,
        }

    def update_reminder(
        self,
        user_id: int,
        reminder_id: int,
        reminder_data: ReminderUpdate,
        device_id: Optional[int] = None,
    ) -> Reminder:
        reminder = self.get_reminder(user_id, reminder_id)
        changes = reminder_data.model_dump(exclude_unset=True)
        expected_version = changes.pop("expected_version", None)
        for key in ("title", "status", "is_alarm", "priority", "tags"):
            if key in changes and changes[key] is None:
                changes.pop(key)
        if "recurrence_rule" in changes:
            changes["recurrence_rule"] = _rule_json(reminder_data.recurrence_rule)
        if expected_version is not None and expected_version != reminder.version:
            raise HTTPException(
                status_code=409,
                detail=f"Reminder was modified (version {reminder.version})",
            )

        if "list_id" in changes:
            self._check_list(user_id, changes["list_id"])

        if "due_at" in changes and not _same_instant(reminder.due_at, changes["due_at"]):
            # A new due time re-arms the due notification
            reminder.notification_sent_at = None

        if "status" in changes and changes["status"] is not None:
            status = ReminderStatus(changes["status"])
            if status == ReminderStatus.COMPLETED and reminder.status != status:
                reminder.completed_at = utc_now()
            elif status != ReminderStatus.COMPLETED:
                reminder.completed_at = None

        for key, value in changes.items():
            setattr(reminder, key, value)
        reminder.last_modified_by = device_id
        return self._commit_with_sync(reminder, SyncAction.UPDATE, device_id)

    def delete_reminder(
        self, user_id: int, reminder_id: int, device_id: Optional[int] = None
    ) -> Reminder:
        reminder = self.get_reminder(user_id, reminder_id)
        reminder.deleted_at = utc_now()
        reminder.last_modified_by = device_id
        return self._commit_with_sync(reminder, SyncAction.DELETE, device_id)

    def snooze_reminder(
        self,
        user_id: int,
        reminder_id: int,
        minutes: int,
        device_id: Optional[int] = None,
    ) -> Reminder:
        reminder = self.get_reminder(user_id, reminder_id)
        reminder.due_at = utc_now() + timedelta(minutes=minutes)
        reminder.status = ReminderStatus.ACTIVE
        reminder.snooze_count = (reminder.snooze_count or 0) + 1
        reminder.notification_sent_at = None
        reminder.last_modified_by = device_id
        return self._commit_with_sync(reminder, SyncAction.UPDATE, device_id)

    def complete_reminder(
        self, user_id: int, reminder_id: int, device_id: Optional[int] = None
    ) -> Reminder:
        reminder = self.get_reminder(user_id, reminder_id)
        reminder.status = ReminderStatus.COMPLETED
        reminder.completed_at = utc_now()
        reminder.last_modified_by = device_id
        return self._commit_with_sync(reminder, SyncAction.UPDATE, device_id)

    def dismiss_reminder(
        self, user_id: int, reminder_id: int, device_id: Optional[int] = None
    ) -> Reminder:
        reminder = self.get_reminder(user_id, reminder_id)
        reminder.status = ReminderStatus.DISMISSED
        reminder.last_modified_by = device_id
        return self._commit_with_sync(reminder, SyncAction.UPDATE, device_id)

    # Scanner store contract

    def find_due_for_notification(self, now: Optional[datetime] = None) -> List[Reminder]:
        now = now or utc_now()
        return (
            self.db.query(Reminder)
            .join(User, User.id == Reminder.user_id)
            .filter(
                Reminder.deleted_at.is_(None),
                User.deleted_at.is_(None),
                Reminder.status == ReminderStatus.ACTIVE,
                Reminder.due_at.isnot(None),
                Reminder.due_at <= as_utc(now),
                Reminder.notification_sent_at.is_(None),
            )
            .order_by(Reminder.due_at.asc())
            .all()
        )

    def mark_notification_sent(
        self, reminder_id: int, sent_at: Optional[datetime] = None
    ) -> bool:
        """Set the guard only if still unset; False means someone else won."""
        updated = (
            self.db.query(Reminder)
            .filter(
                Reminder.id == reminder_id,
                Reminder.notification_sent_at.is_(None),
            )
            .update(
                {Reminder.notification_sent_at: sent_at or utc_now()},
                synchronize_session=False,
            )
        )
        self.db.commit()
        return updated == 1

    def clear_notification_sent(self, reminder_id: int) -> bool:
        updated = (
            self.db.query(Reminder)
            .filter(Reminder.id == reminder_id)
            .update({Reminder.notification_sent_at: None}, synchronize_session=False)
        )
        self.db.commit()
        return updated == 1


def _rule_json(rule: Optional[RecurrenceRule]) -> Optional[dict]:
    if rule is None:
        return None
    return rule.model_dump(mode="json", exclude_none=True)


def _same_instant(current: Optional[datetime], new: Optional[datetime]) -> bool:
    if current is None or new is None:
        return current is None and new is None
    return as_utc(current) == as_utc(new)

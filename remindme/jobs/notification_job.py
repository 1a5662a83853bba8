"""Due-reminder scanner.

Each run finds active reminders whose due time has passed and whose due
notification has not gone out, pushes them to all of the owner's devices
and then sets ``notification_sent_at`` with a conditional update. The
guard is only set once something reached a device (or the user has
nowhere to deliver to), so a run where every send failed is retried on
the next tick.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from remindme.push.dispatcher import NotificationDispatcher
from remindme.push.payloads import reminder_due_payload
from remindme.services.reminder_service import ReminderService
from remindme.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    processed: int = 0
    sent: int = 0
    errors: int = 0
    timed_out: bool = False

    def as_dict(self) -> dict:
        return {"processed": self.processed, "sent": self.sent, "errors": self.errors}


class NotificationJob:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        dispatcher: NotificationDispatcher,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session_factory = session_factory
        self.dispatcher = dispatcher
        self._clock = clock

    def process_due_reminders(
        self, now: Optional[datetime] = None, deadline: Optional[datetime] = None
    ) -> ScanResult:
        now = now or self._clock()
        result = ScanResult()

        with self.session_factory() as db:
            service = ReminderService(db)
            reminders = service.find_due_for_notification(now)
            if reminders:
                logger.info(f"Found {len(reminders)} due reminders")

            for reminder in reminders:
                if deadline is not None and self._clock() >= deadline:
                    result.timed_out = True
                    logger.warning(
                        f"Scan stopped at deadline after {result.processed} of "
                        f"{len(reminders)} reminders"
                    )
                    break
                result.processed += 1
                try:
                    outcome = self._notify(service, reminder)
                except Exception:
                    db.rollback()
                    result.errors += 1
                    logger.error(
                        f"Failed to process due reminder {reminder.id}", exc_info=True
                    )
                    continue
                if outcome is None:
                    result.errors += 1
                elif outcome:
                    result.sent += 1

        return result

    def _notify(self, service: ReminderService, reminder) -> Optional[bool]:
        """Dispatch one reminder; None when every device failed, else whether it was marked."""
        reminder_id, user_id = reminder.id, reminder.user_id
        dispatch = self.dispatcher.send_to_user(user_id, reminder_due_payload(reminder))

        if dispatch.all_failed:
            logger.warning(
                f"Due notification for reminder {reminder_id} failed on all "
                f"{dispatch.attempted} devices: {dispatch.first_error}"
            )
            return None
        if dispatch.errors:
            logger.warning(
                f"Due notification for reminder {reminder_id} reached "
                f"{dispatch.delivered} of {dispatch.attempted} devices"
            )

        marked = service.mark_notification_sent(reminder_id, self._clock())
        if not marked:
            logger.info(f"Reminder {reminder_id} was already marked by another scan")
        return marked

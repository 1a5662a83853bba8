import logging
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from remindme.models.reminder import Reminder
from remindme.models.reminder_list import (
    DEFAULT_COLOR,
    DEFAULT_ICON,
    DEFAULT_LIST_NAME,
    ReminderList,
)
from remindme.models.sync_event import EntityType, SyncAction, SyncEvent
from remindme.schemas.reminder import reminder_snapshot
from remindme.schemas.reminder_list import (
    ReminderListCreate,
    ReminderListUpdate,
    list_snapshot,
)
from remindme.services.sync_service import SyncService
from remindme.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


class ReminderListService:
    def __init__(self, db: Session):
        self.db = db
        self.sync = SyncService(db)
        self.events: List[SyncEvent] = []
        self._pending: List[SyncEvent] = []

    def _record(self, reminder_list: ReminderList, action: SyncAction, device_id):
        self.db.flush()
        self._pending.append(
            self.sync.record_change(
                user_id=reminder_list.user_id,
                entity_type=EntityType.REMINDER_LIST,
                entity_id=reminder_list.id,
                action=action,
                snapshot=list_snapshot(reminder_list),
                device_id=device_id,
            )
        )

    def _commit(self, reminder_list: ReminderList, action: SyncAction) -> ReminderList:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            self._pending = []
            logger.error(
                f"Failed to record {action.value} of list {reminder_list.id}", exc_info=True
            )
            raise
        self.events.extend(self._pending)
        self._pending = []
        self.db.refresh(reminder_list)
        return reminder_list

    def _live_lists(self, user_id: int):
        return self.db.query(ReminderList).filter(
            ReminderList.user_id == user_id, ReminderList.deleted_at.is_(None)
        )

    def create_list(
        self, user_id: int, list_data: ReminderListCreate, device_id: Optional[int] = None
    ) -> ReminderList:
        sort_order = list_data.sort_order
        if sort_order is None:
            sort_order = self._live_lists(user_id).count()
        reminder_list = ReminderList(
            user_id=user_id,
            name=list_data.name,
            color=list_data.color or DEFAULT_COLOR,
            icon=list_data.icon or DEFAULT_ICON,
            sort_order=sort_order,
            is_default=False,
        )
        self.db.add(reminder_list)
        self._record(reminder_list, SyncAction.CREATE, device_id)
        return self._commit(reminder_list, SyncAction.CREATE)

    def ensure_default_list(self, user_id: int, device_id: Optional[int] = None) -> ReminderList:
        """Return the user's default list, creating it on first use."""
        default = self._live_lists(user_id).filter(ReminderList.is_default.is_(True)).first()
        if default:
            return default

        default = ReminderList(
            user_id=user_id,
            name=DEFAULT_LIST_NAME,
            color=DEFAULT_COLOR,
            icon=DEFAULT_ICON,
            sort_order=0,
            is_default=True,
        )
        self.db.add(default)
        self._record(default, SyncAction.CREATE, device_id)
        logger.info(f"Created default list for user {user_id}")
        return self._commit(default, SyncAction.CREATE)

    def get_lists(self, user_id: int, device_id: Optional[int] = None) -> List[ReminderList]:
        self.ensure_default_list(user_id, device_id)
        return (
            self._live_lists(user_id)
            .order_by(ReminderList.sort_order.asc(), ReminderList.id.asc())
            .all()
        )

    def get_list(self, user_id: int, list_id: int) -> ReminderList:
        reminder_list = self._live_lists(user_id).filter(ReminderList.id == list_id).first()
        if not reminder_list:
            raise HTTPException(status_code=404, detail="List not found")
        return reminder_list

    def update_list(
        self,
        user_id: int,
        list_id: int,
        list_data: ReminderListUpdate,
        device_id: Optional[int] = None,
    ) -> ReminderList:
        reminder_list = self.get_list(user_id, list_id)
        for key, value in list_data.model_dump(exclude_unset=True).items():
            if key in ("name", "sort_order") and value is None:
                continue
            setattr(reminder_list, key, value)
        self._record(reminder_list, SyncAction.UPDATE, device_id)
        return self._commit(reminder_list, SyncAction.UPDATE)

    def reorder_lists(
        self, user_id: int, list_ids: List[int], device_id: Optional[int] = None
    ) -> List[ReminderList]:
        """Give each listed list its position in ``list_ids`` as sort order."""
        lists = {item.id: item for item in self._live_lists(user_id).all()}
        unknown = [list_id for list_id in list_ids if list_id not in lists]
        if unknown:
            raise HTTPException(status_code=404, detail=f"List not found: {unknown[0]}")

        changed = []
        for position, list_id in enumerate(list_ids):
            reminder_list = lists[list_id]
            if reminder_list.sort_order != position:
                reminder_list.sort_order = position
                changed.append(reminder_list)
        for reminder_list in changed:
            self._record(reminder_list, SyncAction.UPDATE, device_id)
        if changed:
            try:
                self.db.commit()
            except Exception:
                self.db.rollback()
                self._pending = []
                logger.error(f"Failed to reorder lists of user {user_id}", exc_info=True)
                raise
            self.events.extend(self._pending)
            self._pending = []
        return self.get_lists(user_id, device_id)

    def delete_list(
        self, user_id: int, list_id: int, device_id: Optional[int] = None
    ) -> List[Reminder]:
        """Soft-delete a list together with its reminders; returns the deleted reminders."""
        reminder_list = self.get_list(user_id, list_id)
        if reminder_list.is_default:
            raise HTTPException(status_code=400, detail="The default list cannot be deleted")

        now = utc_now()
        reminders = (
            self.db.query(Reminder)
            .filter(Reminder.list_id == list_id, Reminder.deleted_at.is_(None))
            .all()
        )
        for reminder in reminders:
            reminder.deleted_at = now
            reminder.last_modified_by = device_id
        # Bumps each reminder's version before the snapshots are taken
        self.db.flush()
        for reminder in reminders:
            self._pending.append(
                self.sync.record_change(
                    user_id=user_id,
                    entity_type=EntityType.REMINDER,
                    entity_id=reminder.id,
                    action=SyncAction.DELETE,
                    snapshot=reminder_snapshot(reminder),
                    device_id=device_id,
                )
            )

        reminder_list.deleted_at = now
        self._record(reminder_list, SyncAction.DELETE, device_id)
        self._commit(reminder_list, SyncAction.DELETE)
        if reminders:
            logger.info(f"Deleted list {list_id} with {len(reminders)} reminder(s)")
        return reminders

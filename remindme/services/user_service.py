import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from remindme.models.device import Device
from remindme.models.reminder import Reminder
from remindme.models.reminder_list import ReminderList
from remindme.models.sync_event import SyncEvent
from remindme.models.user import User
from remindme.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


class UserService:
    """Account lifecycle: soft-delete, restore and the final purge."""

    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return user

    def delete_account(self, user_id: int) -> User:
        """Soft-delete the account with its reminders and lists.

        Everything shares one ``deleted_at`` so a restore can bring back
        exactly what went with the account.
        """
        user = self.get_user(user_id)
        if user.deleted_at is not None:
            return user

        now = utc_now()
        user.deleted_at = now
        for model in (Reminder, ReminderList):
            (
                self.db.query(model)
                .filter(model.user_id == user_id, model.deleted_at.is_(None))
                .update({model.deleted_at: now}, synchronize_session=False)
            )
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Account {user_id} scheduled for deletion")
        return user

    def restore_account(self, user_id: int) -> User:
        user = self.get_user(user_id)
        if user.deleted_at is None:
            raise HTTPException(status_code=400, detail="Account is not scheduled for deletion")

        deleted_at = user.deleted_at
        for model in (Reminder, ReminderList):
            (
                self.db.query(model)
                .filter(model.user_id == user_id, model.deleted_at >= deleted_at)
                .update({model.deleted_at: None}, synchronize_session=False)
            )
        user.deleted_at = None
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Account {user_id} restored")
        return user

    def purge_account(self, user_id: int) -> None:
        """Permanently remove a user and everything they own, in one transaction."""
        try:
            for model in (Reminder, ReminderList, Device, SyncEvent):
                (
                    self.db.query(model)
                    .filter(model.user_id == user_id)
                    .delete(synchronize_session=False)
                )
            self.db.query(User).filter(User.id == user_id).delete(synchronize_session=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.error(f"Failed to purge account {user_id}", exc_info=True)
            raise

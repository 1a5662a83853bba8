import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from remindme.models.user import User
from remindme.services.user_service import UserService
from remindme.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


def purge_deleted_accounts(
    session_factory: Callable[[], Session],
    days: int = 30,
    deadline: Optional[datetime] = None,
) -> int:
    """Permanently delete accounts soft-deleted more than ``days`` days ago.

    Each account is purged in its own transaction; one failure is logged
    and the sweep moves on.
    """
    threshold = utc_now() - timedelta(days=days)
    with session_factory() as db:
        user_ids = [
            row.id
            for row in db.query(User.id).filter(
                User.deleted_at.isnot(None), User.deleted_at < threshold
            )
        ]
    if not user_ids:
        logger.info("No accounts to purge")
        return 0

    purged = 0
    for user_id in user_ids:
        if deadline is not None and utc_now() >= deadline:
            logger.warning(f"Account purge stopped at deadline after {purged} account(s)")
            break
        with session_factory() as db:
            try:
                UserService(db).purge_account(user_id)
            except SQLAlchemyError:
                continue
        purged += 1

    logger.info(f"Purged {purged} deleted account(s)")
    return purged

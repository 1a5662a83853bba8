from datetime import timedelta
from typing import Callable

from sqlalchemy.orm import Session

from remindme.services.sync_service import SyncService
from remindme.utils.time_utils import utc_now


def purge_sync_events(session_factory: Callable[[], Session], retention_days: int = 30) -> int:
    """Drop sync events older than the retention horizon.

    Clients whose cursor predates the horizon must do a full refetch.
    """
    before = utc_now() - timedelta(days=retention_days)
    with session_factory() as db:
        return SyncService(db).delete_events_before(before)

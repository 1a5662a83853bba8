import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from remindme.models.sync_event import EntityType, SyncAction, SyncEvent
from remindme.utils.time_utils import as_utc, utc_now

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100
MAX_LIMIT = 500


class SyncService:
    """Append-only change log that clients replay from a cursor."""

    def __init__(self, db: Session):
        self.db = db

    def record_change(
        self,
        user_id: int,
        entity_type: EntityType,
        entity_id: int,
        action: SyncAction,
        snapshot: Optional[dict] = None,
        device_id: Optional[int] = None,
        commit: bool = False,
    ) -> SyncEvent:
        """Add a sync event to the session.

        By default the event joins the caller's transaction so the mutation
        and its log entry commit or roll back together.
        """
        event = SyncEvent(
            user_id=user_id,
            entity_type=EntityType(entity_type).value,
            entity_id=entity_id,
            action=SyncAction(action).value,
            payload=snapshot,
            device_id=device_id,
            created_at=utc_now(),
        )
        self.db.add(event)
        if commit:
            self.db.commit()
            self.db.refresh(event)
        else:
            self.db.flush()
        return event

    def get_changes_since(
        self,
        user_id: int,
        since: Optional[datetime],
        limit: int = DEFAULT_LIMIT,
        exclude_device_id: Optional[int] = None,
    ) -> Tuple[List[SyncEvent], bool]:
        limit = max(1, min(limit, MAX_LIMIT))
        query = self.db.query(SyncEvent).filter(SyncEvent.user_id == user_id)
        if since is not None:
            query = query.filter(SyncEvent.created_at > as_utc(since))
        if exclude_device_id is not None:
            query = query.filter(
                (SyncEvent.device_id.is_(None)) | (SyncEvent.device_id != exclude_device_id)
            )

        events = (
            query.order_by(SyncEvent.created_at.asc(), SyncEvent.id.asc())
            .limit(limit + 1)
            .all()
        )
        has_more = len(events) > limit
        return events[:limit], has_more

    def get_latest_event_time(self, user_id: int) -> Optional[datetime]:
        latest = (
            self.db.query(func.max(SyncEvent.created_at))
            .filter(SyncEvent.user_id == user_id)
            .scalar()
        )
        return as_utc(latest) if latest is not None else None

    def get_events_for_entity(self, entity_type: EntityType, entity_id: int) -> List[SyncEvent]:
        return (
            self.db.query(SyncEvent)
            .filter(
                SyncEvent.entity_type == EntityType(entity_type).value,
                SyncEvent.entity_id == entity_id,
            )
            .order_by(SyncEvent.created_at.asc(), SyncEvent.id.asc())
            .all()
        )

    def delete_events_before(self, before: datetime) -> int:
        deleted = (
            self.db.query(SyncEvent)
            .filter(SyncEvent.created_at < as_utc(before))
            .delete(synchronize_session=False)
        )
        self.db.commit()
        logger.info(f"Deleted {deleted} sync events older than {before.isoformat()}")
        return deleted

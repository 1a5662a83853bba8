from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Query
from starlette import status
from remindme.dependencies import db_dependency, device_dependency, user_dependency
from remindme.schemas.sync import SyncChangesResponse
from remindme.services.sync_service import DEFAULT_LIMIT, MAX_LIMIT, SyncService
from remindme.utils.time_utils import as_utc

router = APIRouter(prefix="/sync", tags=["sync"])


@router.get("/changes", response_model=SyncChangesResponse, status_code=status.HTTP_200_OK)
def get_changes(
    db: db_dependency,
    user: user_dependency,
    device_id: device_dependency,
    since: Optional[datetime] = None,
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    exclude_own: bool = False,
):
    """Events after ``since`` in commit order.

    When ``has_more`` is true, call again with ``since=next_cursor``.
    """
    service = SyncService(db)
    events, has_more = service.get_changes_since(
        user.get("id"),
        since,
        limit=limit,
        exclude_device_id=device_id if exclude_own else None,
    )
    next_cursor = as_utc(events[-1].created_at) if has_more and events else None
    return {
        "changes": events,
        "last_sync_at": service.get_latest_event_time(user.get("id")),
        "has_more": has_more,
        "next_cursor": next_cursor,
    }

import logging
from datetime import timedelta
from fastapi import APIRouter, Depends, HTTPException, Request
from starlette import status
from remindme.config import settings
from remindme.database import open_session
from remindme.dependencies import require_cron_secret
from remindme.jobs.account_purge_job import purge_deleted_accounts
from remindme.jobs.device_cleanup_job import cleanup_stale_devices
from remindme.jobs.notification_job import NotificationJob
from remindme.jobs.sync_retention_job import purge_sync_events
from remindme.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/cron",
    tags=["cron"],
    dependencies=[Depends(require_cron_secret)],
)


@router.post("/notifications", status_code=status.HTTP_200_OK)
def run_notification_scan(request: Request):
    dispatcher = request.app.state.dispatcher
    if dispatcher is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Push notifications are not configured",
        )
    deadline = utc_now() + timedelta(seconds=settings.JOB_TIMEOUT_SECONDS)
    result = NotificationJob(open_session, dispatcher).process_due_reminders(deadline=deadline)
    logger.info(
        f"Cron scan processed {result.processed}, sent {result.sent}, errors {result.errors}"
    )
    return result.as_dict()


@router.post("/device-cleanup", status_code=status.HTTP_200_OK)
def run_device_cleanup():
    deleted = cleanup_stale_devices(open_session, settings.DEVICE_STALE_DAYS)
    return {"deleted": deleted}


@router.post("/sync-retention", status_code=status.HTTP_200_OK)
def run_sync_retention():
    deleted = purge_sync_events(open_session, settings.SYNC_RETENTION_DAYS)
    return {"deleted": deleted}


@router.post("/account-purge", status_code=status.HTTP_200_OK)
def run_account_purge():
    deadline = utc_now() + timedelta(seconds=settings.JOB_TIMEOUT_SECONDS)
    purged = purge_deleted_accounts(open_session, settings.ACCOUNT_PURGE_DAYS, deadline=deadline)
    return {"purged": purged}

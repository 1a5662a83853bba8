"""Optional in-process scheduling for deployments without an external cron."""
import logging
from datetime import timedelta
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from remindme.config import settings
from remindme.database import SessionLocal
from remindme.jobs.account_purge_job import purge_deleted_accounts
from remindme.jobs.device_cleanup_job import cleanup_stale_devices
from remindme.jobs.notification_job import NotificationJob
from remindme.jobs.sync_retention_job import purge_sync_events
from remindme.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


class SchedulerService:
    def __init__(self, notification_job: Optional[NotificationJob], session_factory=SessionLocal):
        self.notification_job = notification_job
        self.session_factory = session_factory
        self.scheduler: Optional[BackgroundScheduler] = None

    def start(self):
        if self.scheduler is not None:
            return

        self.scheduler = BackgroundScheduler(timezone="UTC")
        if self.notification_job is not None:
            self.scheduler.add_job(
                self._scan,
                trigger=IntervalTrigger(seconds=settings.SCAN_INTERVAL_SECONDS),
                id="scan_due_reminders",
                replace_existing=True,
                max_instances=1,
                misfire_grace_time=settings.SCAN_INTERVAL_SECONDS,
            )
        self.scheduler.add_job(
            cleanup_stale_devices,
            trigger=IntervalTrigger(hours=24),
            args=[self.session_factory, settings.DEVICE_STALE_DAYS],
            id="cleanup_stale_devices",
            replace_existing=True,
            max_instances=1,
        )
        self.scheduler.add_job(
            purge_sync_events,
            trigger=IntervalTrigger(hours=24),
            args=[self.session_factory, settings.SYNC_RETENTION_DAYS],
            id="purge_sync_events",
            replace_existing=True,
            max_instances=1,
        )
        self.scheduler.add_job(
            purge_deleted_accounts,
            trigger=IntervalTrigger(hours=24),
            args=[self.session_factory, settings.ACCOUNT_PURGE_DAYS],
            id="purge_deleted_accounts",
            replace_existing=True,
            max_instances=1,
        )
        self.scheduler.start()
        logger.info(f"Scheduler started (scan every {settings.SCAN_INTERVAL_SECONDS}s)")

    def stop(self):
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
            logger.info("Scheduler stopped")

    def _scan(self):
        deadline = utc_now() + timedelta(seconds=settings.JOB_TIMEOUT_SECONDS)
        result = self.notification_job.process_due_reminders(deadline=deadline)
        if result.processed:
            logger.info(
                f"Scheduled scan processed {result.processed}, sent {result.sent}, "
                f"errors {result.errors}"
            )

import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from remindme.config import Settings
from remindme.models.device import Platform
from remindme.push.apns import APNsClient
from remindme.push.credentials import (
    APNsTokenCache,
    FCMTokenCache,
    project_id_from_credentials,
)
from remindme.push.dispatcher import NotificationDispatcher
from remindme.push.fcm import FCMClient

logger = logging.getLogger(__name__)


def build_apns_client(settings: Settings) -> Optional[APNsClient]:
    if not settings.apns_configured:
        logger.info("APNs not configured; iOS devices will be skipped")
        return None
    cache = APNsTokenCache(
        key_id=settings.APNS_KEY_ID,
        team_id=settings.APNS_TEAM_ID,
        private_key=settings.APNS_PRIVATE_KEY,
    )
    return APNsClient(
        cache,
        bundle_id=settings.APNS_BUNDLE_ID,
        production=settings.is_production,
        timeout=settings.PUSH_TIMEOUT_SECONDS,
    )


def build_fcm_client(settings: Settings) -> Optional[FCMClient]:
    if not settings.fcm_configured:
        logger.info("FCM not configured; Android devices will be skipped")
        return None
    project_id = settings.FCM_PROJECT_ID or project_id_from_credentials(
        settings.FCM_CREDENTIALS_JSON
    )
    if not project_id:
        logger.warning("FCM credentials carry no project_id and FCM_PROJECT_ID is unset")
        return None
    cache = FCMTokenCache(settings.FCM_CREDENTIALS_JSON)
    return FCMClient(cache, project_id=project_id, timeout=settings.PUSH_TIMEOUT_SECONDS)


def build_dispatcher(
    settings: Settings, session_factory: Callable[[], Session]
) -> Optional[NotificationDispatcher]:
    """Dispatcher over whichever platform clients are configured, or None."""
    clients = {
        Platform.IOS: build_apns_client(settings),
        Platform.ANDROID: build_fcm_client(settings),
    }
    if not any(clients.values()):
        logger.warning("No push platform configured; notifications are disabled")
        return None
    return NotificationDispatcher(clients, session_factory)

import logging
from typing import Dict, Optional

import requests

from remindme.exceptions import InvalidPushTokenError, PushDeliveryError
from remindme.push.credentials import FCMTokenCache
from remindme.push.payloads import NotificationPayload, PushData, is_urgent

logger = logging.getLogger(__name__)

FCM_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
CHANNEL_ID = "reminders"


class FCMClient:
    """FCM HTTP v1 sender; one POST per device, no retries."""

    platform = "fcm"

    def __init__(
        self,
        token_cache: FCMTokenCache,
        project_id: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.token_cache = token_cache
        self.project_id = project_id
        self.timeout = timeout
        self.url = FCM_URL.format(project_id=project_id)
        self._session = session or requests.Session()

    def send(self, device_token: str, payload: NotificationPayload) -> None:
        data = payload.wire_data()
        # Android clients render alarms themselves from the data block
        data.setdefault("title", payload.title)
        data.setdefault("body", payload.body)
        data.setdefault("channel_id", CHANNEL_ID)

        android_notification = {
            "channel_id": CHANNEL_ID,
            "notification_priority": "PRIORITY_HIGH",
        }
        if payload.sound:
            android_notification["sound"] = payload.sound

        message = {
            "token": device_token,
            "notification": {"title": payload.title, "body": payload.body},
            "data": data,
            "android": {"priority": "high", "notification": android_notification},
        }
        self._send_message(message)

    def send_silent(self, device_token: str, data: PushData) -> None:
        message = {
            "token": device_token,
            "data": data.to_wire(),
            "android": {"priority": "high" if is_urgent(data) else "normal"},
        }
        self._send_message(message)

    def _send_message(self, message: Dict) -> None:
        token = self.token_cache.get_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        try:
            res = self._session.post(
                self.url, json={"message": message}, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise PushDeliveryError(self.platform, str(exc)) from exc

        if 200 <= res.status_code < 300:
            logger.debug(f"FCM accepted message for {message['token'][:16]}...")
            return

        error_code, status = _error_details(res)
        message_text = f"{res.status_code} {error_code or status or res.text}"
        if res.status_code == 401:
            self.token_cache.invalidate()
        if _is_permanent(res.status_code, error_code, status, res.text):
            raise InvalidPushTokenError(self.platform, message_text, res.status_code, res.text)
        raise PushDeliveryError(self.platform, message_text, res.status_code, res.text)

    def close(self) -> None:
        self._session.close()


def _error_details(res):
    try:
        error = res.json().get("error", {})
    except (ValueError, AttributeError):
        return None, None
    error_code = None
    for detail in error.get("details", []) or []:
        if detail.get("errorCode"):
            error_code = detail["errorCode"]
            break
    return error_code, error.get("status")


def _is_permanent(status_code: int, error_code, status, text: str) -> bool:
    if error_code == "UNREGISTERED" or status_code == 404:
        return True
    if status_code == 400 and (
        error_code == "INVALID_ARGUMENT" or status == "INVALID_ARGUMENT"
    ):
        return "registration token" in (text or "").lower()
    return False

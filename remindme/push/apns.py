import json
import logging
from typing import Dict, Optional

import httpx

from remindme.exceptions import InvalidPushTokenError, PushDeliveryError
from remindme.push.credentials import APNsTokenCache
from remindme.push.payloads import NotificationPayload, PushData, is_urgent

logger = logging.getLogger(__name__)

PRODUCTION_URL = "https://api.push.apple.com"
DEVELOPMENT_URL = "https://api.sandbox.push.apple.com"

# Reasons APNs gives for tokens that will never work again
PERMANENT_TOKEN_REASONS = {
    "BadDeviceToken",
    "DeviceTokenNotForTopic",
    "Unregistered",
    "ExpiredToken",
}
PROVIDER_TOKEN_REASONS = {"ExpiredProviderToken", "InvalidProviderToken"}


class APNsClient:
    """Builds APNs HTTP/2 requests; one POST per device, no retries."""

    platform = "apns"

    def __init__(
        self,
        token_cache: APNsTokenCache,
        bundle_id: str,
        production: bool = False,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self.token_cache = token_cache
        self.bundle_id = bundle_id
        self.base_url = PRODUCTION_URL if production else DEVELOPMENT_URL
        self._client = http_client or httpx.Client(http2=True, timeout=timeout)

    def send(self, device_token: str, payload: NotificationPayload) -> None:
        alert = {"title": payload.title, "body": payload.body}
        aps = {
            "alert": alert,
            "mutable-content": 1,
            "content-available": 1,
        }
        if payload.sound:
            aps["sound"] = payload.sound
        if payload.badge is not None:
            aps["badge"] = payload.badge
        if payload.category:
            aps["category"] = payload.category

        body = {"aps": aps}
        body.update(payload.wire_data())
        self._post(device_token, body, push_type="alert", priority="10")

    def send_silent(self, device_token: str, data: PushData) -> None:
        body = {"aps": {"content-available": 1}}
        body.update(data.to_wire())
        # Background pushes are throttled at priority 10 unless they cancel an alert
        priority = "10" if is_urgent(data) else "5"
        self._post(device_token, body, push_type="background", priority=priority)

    def _post(self, device_token: str, body: Dict, push_type: str, priority: str) -> None:
        token = self.token_cache.get_token()
        headers = {
            "authorization": f"bearer {token}",
            "apns-topic": self.bundle_id,
            "apns-push-type": push_type,
            "apns-priority": priority,
        }
        url = f"{self.base_url}/3/device/{device_token}"
        try:
            response = self._client.post(url, content=json.dumps(body), headers=headers)
        except httpx.HTTPError as exc:
            raise PushDeliveryError(self.platform, str(exc)) from exc

        if response.status_code == 200:
            logger.debug(f"APNs accepted {push_type} push for {device_token[:16]}...")
            return

        reason = _reason(response)
        message = f"{response.status_code} {reason or response.text}"
        if reason in PROVIDER_TOKEN_REASONS:
            self.token_cache.invalidate()
        if response.status_code == 410 or reason in PERMANENT_TOKEN_REASONS:
            raise InvalidPushTokenError(
                self.platform, message, response.status_code, response.text
            )
        raise PushDeliveryError(self.platform, message, response.status_code, response.text)

    def close(self) -> None:
        self._client.close()


def _reason(response: httpx.Response) -> Optional[str]:
    try:
        return response.json().get("reason")
    except (ValueError, AttributeError):
        return None

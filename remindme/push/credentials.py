"""Per-platform bearer token caches for push providers.

One cache is built per platform at startup and handed to its client. The
token is refreshed lazily: readers take the cached value while it is
comfortably inside its lifetime, and only one thread performs the refresh
once it is not.
"""
import json
import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple

from firebase_admin import credentials as firebase_credentials
from jose import jwt
from jose.exceptions import JOSEError

from remindme.exceptions import CredentialError
from remindme.utils.time_utils import as_utc, utc_now

logger = logging.getLogger(__name__)


class CredentialCache:
    """Holds ``(token, expiry)`` and refreshes it under a lock with a re-check."""

    platform = "push"

    def __init__(
        self,
        safety_margin: timedelta,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.safety_margin = safety_margin
        self._clock = clock
        self._lock = threading.Lock()
        self._token: Optional[str] = None
        self._expiry: Optional[datetime] = None

    def _fresh(self) -> Optional[str]:
        token, expiry = self._token, self._expiry
        if token and expiry and self._clock() < expiry - self.safety_margin:
            return token
        return None

    def get_token(self) -> str:
        token = self._fresh()
        if token:
            return token

        with self._lock:
            # Another thread may have refreshed while we waited
            token = self._fresh()
            if token:
                return token

            try:
                token, expiry = self._refresh()
            except CredentialError:
                raise
            except Exception as exc:
                logger.error(f"{self.platform} token refresh failed: {exc}")
                raise CredentialError(self.platform, str(exc)) from exc

            self._token, self._expiry = token, expiry
            logger.info(f"{self.platform} token refreshed, expires {expiry.isoformat()}")
            return token

    def invalidate(self) -> None:
        with self._lock:
            self._token = None
            self._expiry = None

    def _refresh(self) -> Tuple[str, datetime]:
        raise NotImplementedError


class APNsTokenCache(CredentialCache):
    """Self-signed ES256 provider token; APNs accepts each one for an hour."""

    platform = "apns"
    TOKEN_LIFETIME = timedelta(minutes=60)

    def __init__(
        self,
        key_id: str,
        team_id: str,
        private_key: str,
        safety_margin: timedelta = timedelta(minutes=10),
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(safety_margin=safety_margin, clock=clock)
        self.key_id = key_id
        self.team_id = team_id
        self._private_key = private_key

    def _refresh(self) -> Tuple[str, datetime]:
        now = self._clock()
        claims = {"iss": self.team_id, "iat": int(now.timestamp())}
        try:
            token = jwt.encode(
                claims,
                self._private_key,
                algorithm="ES256",
                headers={"kid": self.key_id},
            )
        except JOSEError as exc:
            raise CredentialError(self.platform, str(exc)) from exc
        return token, now + self.TOKEN_LIFETIME


class FCMTokenCache(CredentialCache):
    """OAuth2 access token exchanged with the service-account key."""

    platform = "fcm"

    def __init__(
        self,
        credentials_json: str,
        safety_margin: timedelta = timedelta(minutes=1),
        clock: Callable[[], datetime] = utc_now,
        certificate_factory=None,
    ):
        super().__init__(safety_margin=safety_margin, clock=clock)
        self._credentials_json = credentials_json
        self._certificate_factory = certificate_factory or firebase_credentials.Certificate
        self._certificate = None

    def _load_certificate(self):
        if self._certificate is None:
            try:
                info = json.loads(self._credentials_json)
            except json.JSONDecodeError as exc:
                raise CredentialError(self.platform, f"invalid credentials JSON: {exc}") from exc
            self._certificate = self._certificate_factory(info)
        return self._certificate

    def _refresh(self) -> Tuple[str, datetime]:
        certificate = self._load_certificate()
        access = certificate.get_access_token()
        expiry = access.expiry
        if expiry is None:
            expiry = self._clock() + timedelta(minutes=55)
        return access.access_token, as_utc(expiry)


def project_id_from_credentials(credentials_json: str) -> Optional[str]:
    try:
        return json.loads(credentials_json).get("project_id")
    except (json.JSONDecodeError, AttributeError):
        return None


__all__ = [
    "CredentialCache",
    "APNsTokenCache",
    "FCMTokenCache",
    "project_id_from_credentials",
]

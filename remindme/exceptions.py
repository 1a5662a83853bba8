from typing import Optional


class CredentialError(Exception):
    """A push provider bearer token could not be signed or exchanged."""

    def __init__(self, platform: str, message: str):
        super().__init__(f"{platform} credential refresh failed: {message}")
        self.platform = platform


class PushDeliveryError(Exception):
    """The push provider rejected or never answered a send."""

    def __init__(
        self,
        platform: str,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(f"{platform} delivery failed: {message}")
        self.platform = platform
        self.status_code = status_code
        self.body = body


class InvalidPushTokenError(PushDeliveryError):
    """The provider reported the device token as permanently invalid."""

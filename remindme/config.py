from pydantic_settings import BaseSettings
from pydantic import ConfigDict, field_validator


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./remindme.db"

    # JWT
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    ENVIRONMENT: str = "development"

    # Cron endpoints
    CRON_SECRET: str = ""

    # APNs
    APNS_KEY_ID: str = ""
    APNS_TEAM_ID: str = ""
    APNS_PRIVATE_KEY: str = ""
    APNS_BUNDLE_ID: str = "com.remindme.app"

    # FCM
    FCM_PROJECT_ID: str = ""
    FCM_CREDENTIALS_JSON: str = ""

    PUSH_TIMEOUT_SECONDS: float = 30.0
    BACKGROUND_WORKERS: int = 8
    HUB_QUEUE_SIZE: int = 64

    # Jobs
    JOB_TIMEOUT_SECONDS: float = 55.0
    SYNC_RETENTION_DAYS: int = 30
    DEVICE_STALE_DAYS: int = 14
    ACCOUNT_PURGE_DAYS: int = 30
    SCHEDULER_ENABLED: bool = False
    SCAN_INTERVAL_SECONDS: int = 60

    @field_validator("APNS_PRIVATE_KEY", mode="before")
    @classmethod
    def unescape_private_key(cls, v):
        """Allow the .p8 key to be passed on one line with literal \\n separators."""
        if isinstance(v, str) and "\\n" in v:
            return v.replace("\\n", "\n")
        return v

    @field_validator("PUSH_TIMEOUT_SECONDS")
    @classmethod
    def clamp_push_timeout(cls, v):
        return min(max(v, 10.0), 30.0)

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def apns_configured(self) -> bool:
        return bool(self.APNS_KEY_ID and self.APNS_TEAM_ID and self.APNS_PRIVATE_KEY)

    @property
    def fcm_configured(self) -> bool:
        return bool(self.FCM_CREDENTIALS_JSON)

    model_config = ConfigDict(env_file=".env")


settings = Settings()

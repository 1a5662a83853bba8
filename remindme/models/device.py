import enum
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Enum as SqlEnum
from sqlalchemy.orm import relationship
from remindme.database import Base
from remindme.utils.time_utils import utc_now


class Platform(str, enum.Enum):
    IOS = "ios"
    ANDROID = "android"


class Device(Base):
    __tablename__ = "devices"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # A physical device belongs to at most one user at a time
    device_identifier = Column(String(255), unique=True, nullable=False, index=True)
    platform = Column(
        SqlEnum(
            Platform,
            values_callable=lambda obj: [e.value for e in obj],
            native_enum=False,
        ),
        nullable=False,
    )
    push_token = Column(String, nullable=False, index=True)
    device_name = Column(String(255), nullable=True)
    app_version = Column(String(20), nullable=True)
    os_version = Column(String(20), nullable=True)
    last_seen_at = Column(DateTime(timezone=True), default=utc_now)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    user = relationship("User", back_populates="devices")

import enum
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    Enum as SqlEnum,
)
from sqlalchemy.orm import relationship
from remindme.database import Base
from remindme.utils.time_utils import utc_now


class ReminderStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    SNOOZED = "snoozed"
    DISMISSED = "dismissed"


class Reminder(Base):
    __tablename__ = "reminders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    list_id = Column(
        Integer,
        ForeignKey("reminder_lists.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    title = Column(String(500), nullable=False)
    notes = Column(Text, nullable=True)
    priority = Column(Integer, default=2)

    # Reminders without a due date never trigger a notification
    due_at = Column(DateTime(timezone=True), nullable=True, index=True)
    all_day = Column(Boolean, nullable=True)

    # Stored for clients, which expand occurrences locally
    recurrence_rule = Column(JSON, nullable=True)
    recurrence_end = Column(DateTime(timezone=True), nullable=True)

    status = Column(
        SqlEnum(
            ReminderStatus,
            values_callable=lambda obj: [e.value for e in obj],
            native_enum=False,
        ),
        default=ReminderStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    completed_at = Column(DateTime(timezone=True), nullable=True)
    snooze_count = Column(Integer, default=0, nullable=False)
    is_alarm = Column(Boolean, default=False, nullable=False)
    sound_id = Column(String(50), nullable=True)
    tags = Column(JSON, default=list, nullable=False)

    # Set once the due notification for the current due_at went out
    notification_sent_at = Column(DateTime(timezone=True), nullable=True, index=True)

    local_id = Column(String(255), nullable=True, index=True)
    version = Column(Integer, nullable=False)
    last_modified_by = Column(Integer, nullable=True)  # device id, attribution only

    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)

    user = relationship("User", back_populates="reminders")
    reminder_list = relationship("ReminderList", back_populates="reminders")

    __mapper_args__ = {"version_id_col": version}

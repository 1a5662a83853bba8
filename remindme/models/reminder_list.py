from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from remindme.database import Base
from remindme.utils.time_utils import utc_now

DEFAULT_LIST_NAME = "Reminders"
DEFAULT_COLOR = "#007AFF"
DEFAULT_ICON = "list.bullet"


class ReminderList(Base):
    __tablename__ = "reminder_lists"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    color = Column(String(20), nullable=True, default=DEFAULT_COLOR)
    icon = Column(String(50), nullable=True, default=DEFAULT_ICON)
    sort_order = Column(Integer, default=0)
    # One per user, created on demand; it cannot be deleted
    is_default = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    reminders = relationship("Reminder", back_populates="reminder_list")

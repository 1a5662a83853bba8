import enum
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String
from remindme.database import Base
from remindme.utils.time_utils import utc_now


class SyncAction(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class EntityType(str, enum.Enum):
    REMINDER = "reminder"
    REMINDER_LIST = "reminder_list"


class SyncEvent(Base):
    """Append-only record of one entity mutation; never updated after insert."""

    __tablename__ = "sync_events"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Integer, nullable=False)
    action = Column(String(20), nullable=False)
    payload = Column(JSON, nullable=True)  # snapshot of the entity after the change
    device_id = Column(Integer, nullable=True)  # originating device, if known
    created_at = Column(DateTime(timezone=True), default=utc_now, index=True)

    __table_args__ = (
        Index("ix_sync_events_user_created", "user_id", "created_at"),
        Index("ix_sync_events_entity", "entity_type", "entity_id"),
    )

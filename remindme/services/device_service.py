import logging
from datetime import timedelta
from typing import Iterable, List, NamedTuple, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from remindme.models.device import Device, Platform
from remindme.schemas.device import DeviceRegister
from remindme.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


class PushTarget(NamedTuple):
    platform: Platform
    push_token: str


def _dedupe(rows: Iterable) -> List[PushTarget]:
    """One target per push token, keeping the first platform seen."""
    seen = set()
    targets = []
    for platform, push_token in rows:
        if not push_token or push_token in seen:
            continue
        seen.add(push_token)
        targets.append(PushTarget(Platform(platform), push_token))
    return targets


class DeviceService:
    def __init__(self, db: Session):
        self.db = db

    def register_device(self, user_id: int, device_data: DeviceRegister) -> Device:
        """Create or refresh the caller's device row.

        A device identifier belongs to one user at a time, so a row left
        behind by a previous owner is removed first. A push token that shows
        up under a new identifier for the same user (app reinstall) replaces
        the old row.
        """
        previous_owner = (
            self.db.query(Device)
            .filter(
                Device.device_identifier == device_data.device_identifier,
                Device.user_id != user_id,
            )
            .first()
        )
        if previous_owner:
            logger.info(
                f"Unlinking device {device_data.device_identifier} from user "
                f"{previous_owner.user_id} before registering it to user {user_id}"
            )
            self.db.delete(previous_owner)
            self.db.flush()

        superseded = (
            self.db.query(Device)
            .filter(
                Device.user_id == user_id,
                Device.push_token == device_data.push_token,
                Device.device_identifier != device_data.device_identifier,
            )
            .all()
        )
        for device in superseded:
            logger.info(
                f"Removing device {device.id} of user {user_id}: push token re-registered "
                f"under {device_data.device_identifier}"
            )
            self.db.delete(device)
        if superseded:
            self.db.flush()

        now = utc_now()
        device = (
            self.db.query(Device)
            .filter(
                Device.user_id == user_id,
                Device.device_identifier == device_data.device_identifier,
            )
            .first()
        )
        if device is None:
            device = Device(user_id=user_id, **device_data.model_dump(), last_seen_at=now)
            self.db.add(device)
        else:
            for key, value in device_data.model_dump().items():
                setattr(device, key, value)
            device.last_seen_at = now

        self.db.commit()
        self.db.refresh(device)
        return device

    def list_devices(self, user_id: int) -> List[Device]:
        return (
            self.db.query(Device)
            .filter(Device.user_id == user_id)
            .order_by(Device.last_seen_at.desc())
            .all()
        )

    def get_device(self, device_id: int) -> Optional[Device]:
        return self.db.query(Device).filter(Device.id == device_id).first()

    def get_user_device(self, user_id: int, device_id: int) -> Optional[Device]:
        return (
            self.db.query(Device)
            .filter(Device.id == device_id, Device.user_id == user_id)
            .first()
        )

    def unregister_device(self, user_id: int, device_id: int) -> None:
        device = self.get_user_device(user_id, device_id)
        if not device:
            raise HTTPException(status_code=404, detail="Device not found")
        self.db.delete(device)
        self.db.commit()

    def touch_last_seen(self, device: Device) -> None:
        device.last_seen_at = utc_now()
        self.db.commit()

    def get_all_push_tokens(self, user_id: int) -> List[PushTarget]:
        rows = (
            self.db.query(Device.platform, Device.push_token)
            .filter(Device.user_id == user_id)
            .order_by(Device.last_seen_at.desc())
            .all()
        )
        return _dedupe(rows)

    def get_push_tokens_excluding(
        self, user_id: int, exclude_device_id: Optional[int]
    ) -> List[PushTarget]:
        if exclude_device_id is None:
            return self.get_all_push_tokens(user_id)

        query = self.db.query(Device.platform, Device.push_token).filter(
            Device.user_id == user_id, Device.id != exclude_device_id
        )
        excluded = self.get_device(exclude_device_id)
        if excluded is not None:
            # Stale rows sharing the originator's token must not echo back to it
            query = query.filter(Device.push_token != excluded.push_token)
        rows = query.order_by(Device.last_seen_at.desc()).all()
        return _dedupe(rows)

    def get_device_target(self, device_id: int) -> Optional[PushTarget]:
        device = self.get_device(device_id)
        if device is None or not device.push_token:
            return None
        return PushTarget(Platform(device.platform), device.push_token)

    def delete_by_push_token(self, push_token: str) -> int:
        deleted = (
            self.db.query(Device)
            .filter(Device.push_token == push_token)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted

    def delete_stale_devices(self, days: int = 14) -> int:
        cutoff = utc_now() - timedelta(days=days)
        deleted = (
            self.db.query(Device)
            .filter(Device.last_seen_at < cutoff)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        logger.info(f"Deleted {deleted} devices not seen for {days} days")
        return deleted

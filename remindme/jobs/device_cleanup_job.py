from typing import Callable

from sqlalchemy.orm import Session

from remindme.services.device_service import DeviceService


def cleanup_stale_devices(session_factory: Callable[[], Session], days: int = 14) -> int:
    """Delete devices that have not been seen for ``days`` days."""
    with session_factory() as db:
        return DeviceService(db).delete_stale_devices(days)

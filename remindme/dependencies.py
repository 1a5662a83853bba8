import hmac
import logging
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Request
from starlette import status
from sqlalchemy.orm import Session

from remindme.config import settings
from remindme.database import SessionLocal
from remindme.models.user import User
from remindme.services.auth_service import get_current_user
from remindme.services.device_service import DeviceService
from remindme.services.propagation import ChangePropagator

logger = logging.getLogger(__name__)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


db_dependency = Annotated[Session, Depends(get_db)]
token_user_dependency = Annotated[dict, Depends(get_current_user)]


def get_active_user(db: db_dependency, user: token_user_dependency) -> dict:
    """The token's user, refused while the account is scheduled for deletion."""
    row = db.query(User.deleted_at).filter(User.id == user.get("id")).first()
    if row is not None and row.deleted_at is not None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is scheduled for deletion",
        )
    return user


user_dependency = Annotated[dict, Depends(get_active_user)]


def get_device_id(
    db: db_dependency,
    user: user_dependency,
    x_device_id: Annotated[Optional[str], Header()] = None,
) -> Optional[int]:
    """The calling device, from the token claim or the X-Device-ID header.

    Ids that do not name one of the caller's devices are ignored.
    """
    raw = user.get("device_id") or x_device_id
    if raw is None:
        return None
    try:
        device_id = int(raw)
    except (TypeError, ValueError):
        return None

    service = DeviceService(db)
    device = service.get_user_device(user.get("id"), device_id)
    if device is None:
        return None
    service.touch_last_seen(device)
    return device.id


device_dependency = Annotated[Optional[int], Depends(get_device_id)]


def get_propagator(request: Request) -> ChangePropagator:
    return request.app.state.propagator


propagator_dependency = Annotated[ChangePropagator, Depends(get_propagator)]


def require_cron_secret(authorization: Annotated[Optional[str], Header()] = None) -> None:
    secret = settings.CRON_SECRET
    expected = f"Bearer {secret}"
    if not secret or not authorization or not hmac.compare_digest(authorization, expected):
        logger.warning("Rejected cron request with missing or invalid secret")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )

from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Query, Response
from starlette import status
from remindme.dependencies import (
    db_dependency,
    device_dependency,
    propagator_dependency,
    user_dependency,
)
from remindme.models.reminder import ReminderStatus
from remindme.push.payloads import CrossDeviceAction
from remindme.schemas.reminder import (
    ReminderCreate,
    ReminderPage,
    ReminderResponse,
    ReminderUpdate,
    SnoozeRequest,
)
from remindme.services.reminder_service import ReminderService

router = APIRouter(prefix="/reminders", tags=["reminders"])


@router.post("/", response_model=ReminderResponse, status_code=status.HTTP_201_CREATED)
def create_reminder(
    db: db_dependency,
    user: user_dependency,
    device_id: device_dependency,
    propagator: propagator_dependency,
    reminder_data: ReminderCreate,
    response: Response,
):
    service = ReminderService(db)
    reminder, created = service.create_reminder(user.get("id"), reminder_data, device_id)
    if created:
        propagator.publish(service.events, device_id)
    else:
        response.status_code = status.HTTP_200_OK
    return reminder


@router.get("/", response_model=ReminderPage, status_code=status.HTTP_200_OK)
def list_reminders(
    db: db_dependency,
    user: user_dependency,
    status_filter: Optional[ReminderStatus] = Query(None, alias="status"),
    list_id: Optional[int] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    return ReminderService(db).list_reminders(
        user.get("id"),
        status=status_filter,
        list_id=list_id,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )


@router.get("/{reminder_id}", response_model=ReminderResponse, status_code=status.HTTP_200_OK)
def get_reminder(db: db_dependency, user: user_dependency, reminder_id: int):
    return ReminderService(db).get_reminder(user.get("id"), reminder_id)


@router.patch("/{reminder_id}", response_model=ReminderResponse, status_code=status.HTTP_200_OK)
def update_reminder(
    db: db_dependency,
    user: user_dependency,
    device_id: device_dependency,
    propagator: propagator_dependency,
    reminder_id: int,
    reminder_data: ReminderUpdate,
):
    service = ReminderService(db)
    reminder = service.update_reminder(user.get("id"), reminder_id, reminder_data, device_id)
    propagator.publish(service.events, device_id)
    return reminder


@router.delete("/{reminder_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_reminder(
    db: db_dependency,
    user: user_dependency,
    device_id: device_dependency,
    propagator: propagator_dependency,
    reminder_id: int,
):
    service = ReminderService(db)
    service.delete_reminder(user.get("id"), reminder_id, device_id)
    propagator.publish(
        service.events, device_id, cross_device_action=CrossDeviceAction.DELETE
    )


@router.post(
    "/{reminder_id}/snooze", response_model=ReminderResponse, status_code=status.HTTP_200_OK
)
def snooze_reminder(
    db: db_dependency,
    user: user_dependency,
    device_id: device_dependency,
    propagator: propagator_dependency,
    reminder_id: int,
    snooze: SnoozeRequest,
):
    service = ReminderService(db)
    reminder = service.snooze_reminder(user.get("id"), reminder_id, snooze.minutes, device_id)
    propagator.publish(
        service.events, device_id, cross_device_action=CrossDeviceAction.SNOOZE
    )
    return reminder


@router.post(
    "/{reminder_id}/complete", response_model=ReminderResponse, status_code=status.HTTP_200_OK
)
def complete_reminder(
    db: db_dependency,
    user: user_dependency,
    device_id: device_dependency,
    propagator: propagator_dependency,
    reminder_id: int,
):
    service = ReminderService(db)
    reminder = service.complete_reminder(user.get("id"), reminder_id, device_id)
    propagator.publish(
        service.events, device_id, cross_device_action=CrossDeviceAction.COMPLETE
    )
    return reminder


@router.post(
    "/{reminder_id}/dismiss", response_model=ReminderResponse, status_code=status.HTTP_200_OK
)
def dismiss_reminder(
    db: db_dependency,
    user: user_dependency,
    device_id: device_dependency,
    propagator: propagator_dependency,
    reminder_id: int,
):
    service = ReminderService(db)
    reminder = service.dismiss_reminder(user.get("id"), reminder_id, device_id)
    propagator.publish(
        service.events, device_id, cross_device_action=CrossDeviceAction.DISMISS
    )
    return reminder

from typing import List
from fastapi import APIRouter
from starlette import status
from remindme.dependencies import (
    db_dependency,
    device_dependency,
    propagator_dependency,
    user_dependency,
)
from remindme.push.payloads import CrossDeviceAction
from remindme.schemas.reminder_list import (
    ReminderListCreate,
    ReminderListReorder,
    ReminderListResponse,
    ReminderListUpdate,
)
from remindme.services.reminder_list_service import ReminderListService

router = APIRouter(prefix="/lists", tags=["lists"])


@router.post("/", response_model=ReminderListResponse, status_code=status.HTTP_201_CREATED)
def create_list(
    db: db_dependency,
    user: user_dependency,
    device_id: device_dependency,
    propagator: propagator_dependency,
    list_data: ReminderListCreate,
):
    service = ReminderListService(db)
    reminder_list = service.create_list(user.get("id"), list_data, device_id)
    propagator.publish(service.events, device_id)
    return reminder_list


@router.get("/", response_model=List[ReminderListResponse], status_code=status.HTTP_200_OK)
def get_lists(
    db: db_dependency,
    user: user_dependency,
    device_id: device_dependency,
    propagator: propagator_dependency,
):
    service = ReminderListService(db)
    lists = service.get_lists(user.get("id"), device_id)
    # The first listing creates the default list
    propagator.publish(service.events, device_id)
    return lists


@router.put("/reorder", response_model=List[ReminderListResponse], status_code=status.HTTP_200_OK)
def reorder_lists(
    db: db_dependency,
    user: user_dependency,
    device_id: device_dependency,
    propagator: propagator_dependency,
    reorder: ReminderListReorder,
):
    service = ReminderListService(db)
    lists = service.reorder_lists(user.get("id"), reorder.list_ids, device_id)
    propagator.publish(service.events, device_id)
    return lists


@router.get("/{list_id}", response_model=ReminderListResponse, status_code=status.HTTP_200_OK)
def get_list(db: db_dependency, user: user_dependency, list_id: int):
    return ReminderListService(db).get_list(user.get("id"), list_id)


@router.patch("/{list_id}", response_model=ReminderListResponse, status_code=status.HTTP_200_OK)
def update_list(
    db: db_dependency,
    user: user_dependency,
    device_id: device_dependency,
    propagator: propagator_dependency,
    list_id: int,
    list_data: ReminderListUpdate,
):
    service = ReminderListService(db)
    reminder_list = service.update_list(user.get("id"), list_id, list_data, device_id)
    propagator.publish(service.events, device_id)
    return reminder_list


@router.delete("/{list_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_list(
    db: db_dependency,
    user: user_dependency,
    device_id: device_dependency,
    propagator: propagator_dependency,
    list_id: int,
):
    service = ReminderListService(db)
    service.delete_list(user.get("id"), list_id, device_id)
    # Each deleted reminder cancels its local alert; the list itself rides a sync push
    propagator.publish(
        service.events, device_id, cross_device_action=CrossDeviceAction.DELETE
    )

from typing import List
from fastapi import APIRouter
from starlette import status
from remindme.dependencies import db_dependency, user_dependency
from remindme.schemas.device import DeviceRegister, DeviceResponse
from remindme.services.device_service import DeviceService

router = APIRouter(prefix="/devices", tags=["devices"])


@router.post("/", response_model=DeviceResponse, status_code=status.HTTP_201_CREATED)
def register_device(db: db_dependency, user: user_dependency, device_data: DeviceRegister):
    return DeviceService(db).register_device(user.get("id"), device_data)


@router.get("/", response_model=List[DeviceResponse], status_code=status.HTTP_200_OK)
def list_devices(db: db_dependency, user: user_dependency):
    return DeviceService(db).list_devices(user.get("id"))


@router.delete("/{device_id}", status_code=status.HTTP_204_NO_CONTENT)
def unregister_device(db: db_dependency, user: user_dependency, device_id: int):
    DeviceService(db).unregister_device(user.get("id"), device_id)

from typing import List, Optional

from fastapi import APIRouter, HTTPException

from db import SessionDep
from models import DeviceStatus
from schemas import DeviceActiveUpdate, DeviceCreate, DeviceModeration, DeviceRead
from services import devices
from .auth import AdminDep, UserRoleDep

router = APIRouter(tags=["devices"])


@router.get("/{device_id}", response_model=DeviceRead)
def get_device(device_id: int, session: SessionDep):
    """
    Get a single device by ID.
    """
    return devices.get_device(session, device_id)


@router.post("/", response_model=DeviceRead, status_code=201)
def create_device(device_in: DeviceCreate, session: SessionDep, current: UserRoleDep):
    """
    List a device for donation. It stays pending until an admin approves it.
    """
    if current["role"] != "donor":
        raise HTTPException(status_code=403, detail="Only donors can list devices.")
    return devices.create_device(
        session,
        owner_id=current["user"].id,
        title=device_in.title,
        description=device_in.description,
        device_type=device_in.device_type,
        condition=device_in.condition,
    )


@router.get("/", response_model=List[DeviceRead])
def list_devices(session: SessionDep, status: Optional[DeviceStatus] = None):
    """
    List requestable devices, or every device with the given moderation status.
    """
    return devices.list_devices(session, status)


@router.put("/{device_id}/status", response_model=DeviceRead)
def moderate_device(
    device_id: int,
    update: DeviceModeration,
    session: SessionDep,
    admin: AdminDep,
):
    return devices.moderate_device(
        session,
        device_id,
        update.status,
        admin_notes=update.admin_notes,
        rejection_reason=update.rejection_reason,
    )


@router.put("/{device_id}/active", response_model=DeviceRead)
def set_device_active(
    device_id: int,
    update: DeviceActiveUpdate,
    session: SessionDep,
    current: UserRoleDep,
):
    device = devices.get_device(session, device_id)
    if current["role"] != "admin" and device.owner_id != current["user"].id:
        raise HTTPException(
            status_code=403,
            detail="You can only manage devices you donated.",
        )
    return devices.set_active(session, device_id, update.is_active)

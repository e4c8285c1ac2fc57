"""Device availability store.

The request engine only reads devices through :func:`get_device`; moderation
and activation belong to the donor/admin flows below.
"""
import logging
from typing import List, Optional

from sqlmodel import Session, select

from errors import DeviceNotFound, MissingRejectionReason, ValidationError
from models import Device, DeviceStatus, utcnow

logger = logging.getLogger(__name__)


def get_device(session: Session, device_id: int) -> Device:
    device = session.get(Device, device_id)
    if device is None:
        raise DeviceNotFound()
    return device


def find_device(session: Session, device_id: int) -> Optional[Device]:
    return session.get(Device, device_id)


def create_device(
    session: Session,
    owner_id: int,
    title: str,
    description: str,
    device_type: str,
    condition: str,
) -> Device:
    device = Device(
        owner_id=owner_id,
        title=title.strip(),
        description=description.strip(),
        device_type=device_type,
        condition=condition,
        status=DeviceStatus.pending,
    )
    session.add(device)
    session.commit()
    session.refresh(device)
    logger.info("Device %s listed by user %s, awaiting review", device.id, owner_id)
    return device


def list_devices(session: Session, status: Optional[DeviceStatus] = None) -> List[Device]:
    """List devices; without a status filter only requestable devices are returned."""
    query = select(Device)
    if status is None:
        query = query.where(
            Device.status == DeviceStatus.approved,
            Device.is_active == True,  # noqa: E712
        )
    else:
        query = query.where(Device.status == status)
    return list(session.exec(query.order_by(Device.created_at.desc())).all())


def moderate_device(
    session: Session,
    device_id: int,
    status: DeviceStatus,
    admin_notes: Optional[str] = None,
    rejection_reason: Optional[str] = None,
) -> Device:
    device = get_device(session, device_id)
    if status == DeviceStatus.rejected:
        if not rejection_reason or not rejection_reason.strip():
            raise MissingRejectionReason()
        device.rejection_reason = rejection_reason.strip()
    else:
        device.rejection_reason = None
    if status == DeviceStatus.approved:
        device.approved_at = utcnow()
    device.status = status
    device.admin_notes = admin_notes
    session.add(device)
    session.commit()
    session.refresh(device)
    logger.info("Device %s moderated to %s", device_id, status.value)
    return device


def set_active(session: Session, device_id: int, is_active: bool) -> Device:
    device = get_device(session, device_id)
    if is_active and device.status != DeviceStatus.approved:
        raise ValidationError("Only approved devices can be reactivated")
    device.is_active = is_active
    session.add(device)
    session.commit()
    session.refresh(device)
    logger.info("Device %s active flag set to %s", device_id, is_active)
    return device


def deactivate(session: Session, device: Device) -> None:
    """Mark a fulfilled device inactive; the caller owns the transaction."""
    if device.is_active:
        device.is_active = False
        session.add(device)
        logger.info("Device %s deactivated after fulfilment", device.id)


def lock_device(session: Session, device_id: int) -> Optional[Device]:
    """Row-lock the device so approvals for it are applied one at a time."""
    return session.exec(select(Device).where(Device.id == device_id).with_for_update()).first()

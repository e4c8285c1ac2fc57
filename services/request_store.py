"""Queries and guarded writes over DeviceRequest rows.

Every invariant the engine relies on is re-checked here inside the writing
transaction: the partial unique index covers open (device, requester) pairs,
``lock_requester`` serializes request creation per requester, and status
changes are conditional updates keyed on the status and version last read.
"""
import logging
import math
from typing import Dict, List, Optional, Tuple

from sqlalchemy import delete, func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from errors import ConflictError, RequestNotFound, UserNotFound
from models import OPEN_REQUEST_STATUSES, DeviceRequest, RequestStatus, User, utcnow

logger = logging.getLogger(__name__)


def get_request(session: Session, request_id: int) -> DeviceRequest:
    req = session.get(DeviceRequest, request_id)
    if req is None:
        raise RequestNotFound()
    return req


def find_open_request(
    session: Session, device_id: int, requester_id: int
) -> Optional[DeviceRequest]:
    return session.exec(
        select(DeviceRequest).where(
            DeviceRequest.device_id == device_id,
            DeviceRequest.requester_id == requester_id,
            DeviceRequest.status.in_(OPEN_REQUEST_STATUSES),
        )
    ).first()


def count_open_requests(session: Session, requester_id: int) -> int:
    return session.exec(
        select(func.count())
        .select_from(DeviceRequest)
        .where(
            DeviceRequest.requester_id == requester_id,
            DeviceRequest.status.in_(OPEN_REQUEST_STATUSES),
        )
    ).one()


def lock_requester(session: Session, requester_id: int) -> None:
    """Take the requester's row lock for the rest of the transaction.

    Concurrent creations for the same requester queue up here, so the
    eligibility re-check that follows sees every committed insert.
    """
    result = session.exec(
        update(User)
        .where(User.id == requester_id)
        .values(request_seq=User.request_seq + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise UserNotFound()


def insert_request(session: Session, req: DeviceRequest) -> DeviceRequest:
    session.add(req)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        logger.warning(
            "Open request already exists for device %s / requester %s",
            req.device_id,
            req.requester_id,
        )
        raise ConflictError("You already have an active request for this device")
    session.refresh(req)
    return req


def apply_transition(session: Session, req: DeviceRequest, values: dict) -> None:
    """Write ``values`` only if ``req`` still has the status and version we read."""
    values = dict(values, version=req.version + 1, updated_at=utcnow())
    result = session.exec(
        update(DeviceRequest)
        .where(
            DeviceRequest.id == req.id,
            DeviceRequest.status == req.status,
            DeviceRequest.version == req.version,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        session.rollback()
        logger.warning("Stale update on device request %s (version %s)", req.id, req.version)
        raise ConflictError()


def delete_pending(session: Session, req: DeviceRequest) -> None:
    result = session.exec(
        delete(DeviceRequest)
        .where(
            DeviceRequest.id == req.id,
            DeviceRequest.status == RequestStatus.pending,
            DeviceRequest.version == req.version,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        session.rollback()
        logger.warning("Stale cancel on device request %s (version %s)", req.id, req.version)
        raise ConflictError()


def has_recipient(session: Session, device_id: int, exclude_id: int) -> bool:
    """True if some other request for the device was already approved or completed."""
    return (
        session.exec(
            select(DeviceRequest.id).where(
                DeviceRequest.device_id == device_id,
                DeviceRequest.id != exclude_id,
                DeviceRequest.status.in_((RequestStatus.approved, RequestStatus.completed)),
            )
        ).first()
        is not None
    )


def reject_pending_siblings(
    session: Session, device_id: int, keep_id: int, reason: str
) -> int:
    result = session.exec(
        update(DeviceRequest)
        .where(
            DeviceRequest.device_id == device_id,
            DeviceRequest.id != keep_id,
            DeviceRequest.status == RequestStatus.pending,
        )
        .values(
            status=RequestStatus.rejected,
            rejection_reason=reason,
            version=DeviceRequest.version + 1,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def list_requests(
    session: Session,
    page: int,
    page_size: int,
    requester_id: Optional[int] = None,
    device_id: Optional[int] = None,
    status: Optional[RequestStatus] = None,
) -> Tuple[List[DeviceRequest], int, int]:
    """Return one page of requests, newest first, plus total and page count."""
    filters = []
    if requester_id is not None:
        filters.append(DeviceRequest.requester_id == requester_id)
    if device_id is not None:
        filters.append(DeviceRequest.device_id == device_id)
    if status is not None:
        filters.append(DeviceRequest.status == status)

    total = session.exec(
        select(func.count()).select_from(DeviceRequest).where(*filters)
    ).one()
    items = session.exec(
        select(DeviceRequest)
        .where(*filters)
        .order_by(DeviceRequest.created_at.desc(), DeviceRequest.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).all()
    total_pages = math.ceil(total / page_size) if total else 0
    return list(items), total, total_pages


def count_by_status(session: Session) -> Dict[RequestStatus, int]:
    rows = session.exec(
        select(DeviceRequest.status, func.count()).group_by(DeviceRequest.status)
    ).all()
    counts = {status: 0 for status in RequestStatus}
    for status, count in rows:
        counts[RequestStatus(status)] = count
    return counts


def list_for_device_with_names(
    session: Session, device_id: int
) -> List[Tuple[DeviceRequest, str]]:
    """Every request for a device with its requester's name, newest first."""
    rows = session.exec(
        select(DeviceRequest, User.name)
        .join(User, DeviceRequest.requester_id == User.id)
        .where(DeviceRequest.device_id == device_id)
        .order_by(DeviceRequest.created_at.desc(), DeviceRequest.id.desc())
    ).all()
    return list(rows)

"""Device request state machine.

    pending --> approved --> completed
       |
       +-----> rejected

A pending request may also be cancelled by its requester, which deletes it.
Callers authorize the actor; this module only enforces the transitions.
"""
import logging
from typing import Dict, FrozenSet, Optional

from sqlmodel import Session

from config import get_settings
from errors import (
    DomainError,
    Forbidden,
    IneligibleRequest,
    InvalidTransition,
    MissingRejectionReason,
    ConflictError,
    ValidationError,
)
from models import DeviceRequest, RequestStatus, utcnow
from services import devices, eligibility, request_store

logger = logging.getLogger(__name__)

SIBLING_REJECTION_REASON = "Device assigned to another recipient"

TRANSITIONS: Dict[RequestStatus, FrozenSet[RequestStatus]] = {
    RequestStatus.pending: frozenset({RequestStatus.approved, RequestStatus.rejected}),
    RequestStatus.approved: frozenset({RequestStatus.completed}),
    RequestStatus.rejected: frozenset(),
    RequestStatus.completed: frozenset(),
}


def _clean_text(value: Optional[str], field: str, max_length: int) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f"{field} cannot exceed {max_length} characters")
    return value or None


def parse_status(value) -> RequestStatus:
    try:
        return RequestStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid status: {value}")


def create_request(
    session: Session, device_id: int, requester_id: int, message: str
) -> DeviceRequest:
    settings = get_settings()
    message = _clean_text(message or "", "Message", settings.message_max_length)
    if not message:
        raise ValidationError("Message is required")

    devices.get_device(session, device_id)
    request_store.lock_requester(session, requester_id)
    try:
        result = eligibility.can_request(session, device_id, requester_id)
    except DomainError:
        session.rollback()
        raise
    if not result.can_request:
        existing_id = result.existing_request.id if result.existing_request else None
        session.rollback()
        logger.warning(
            "Request by user %s for device %s refused: %s",
            requester_id,
            device_id,
            result.reason,
        )
        raise IneligibleRequest(result.reason, result.active_request_count, existing_id)

    req = request_store.insert_request(
        session,
        DeviceRequest(
            device_id=device_id,
            requester_id=requester_id,
            message=message,
            status=RequestStatus.pending,
        ),
    )
    logger.info("Device request %s created by user %s for device %s", req.id, requester_id, device_id)
    return req


def set_status(
    session: Session,
    request_id: int,
    new_status,
    admin_notes: Optional[str] = None,
    rejection_reason: Optional[str] = None,
    actor_id: Optional[int] = None,
) -> DeviceRequest:
    settings = get_settings()
    target = parse_status(new_status)
    req = request_store.get_request(session, request_id)
    current = RequestStatus(req.status)

    if target not in TRANSITIONS[current]:
        raise InvalidTransition(f"Cannot move request from {current.value} to {target.value}")

    now = utcnow()
    values = {"status": target}
    if target == RequestStatus.approved:
        notes = _clean_text(admin_notes, "Admin notes", settings.notes_max_length)
        devices.lock_device(session, req.device_id)
        if request_store.has_recipient(session, req.device_id, req.id):
            session.rollback()
            raise ConflictError("Device already has an approved recipient")
        values.update(
            admin_notes=notes,
            rejection_reason=None,
            reviewed_by_id=actor_id,
            approved_at=now,
        )
    elif target == RequestStatus.rejected:
        reason = (rejection_reason or "").strip()
        if not reason:
            raise MissingRejectionReason()
        values.update(rejection_reason=reason, reviewed_by_id=actor_id)
    elif target == RequestStatus.completed:
        values.update(completed_at=now)

    request_store.apply_transition(session, req, values)

    if target == RequestStatus.approved:
        rejected = request_store.reject_pending_siblings(
            session, req.device_id, req.id, SIBLING_REJECTION_REASON
        )
        if rejected:
            logger.info("Auto-rejected %s pending request(s) for device %s", rejected, req.device_id)
    elif target == RequestStatus.completed and settings.deactivate_device_on_completion:
        device = devices.find_device(session, req.device_id)
        if device is not None:
            devices.deactivate(session, device)

    session.commit()
    session.refresh(req)
    logger.info("Device request %s moved from %s to %s", req.id, current.value, target.value)
    return req


def cancel(session: Session, request_id: int, requester_id: int) -> None:
    req = request_store.get_request(session, request_id)
    if req.requester_id != requester_id:
        raise Forbidden("You can only cancel your own requests")
    if req.status != RequestStatus.pending:
        raise InvalidTransition("Only pending requests can be cancelled")

    request_store.delete_pending(session, req)
    session.commit()
    session.expunge(req)
    logger.info("Device request %s cancelled by user %s", request_id, requester_id)

import logging
from dataclasses import dataclass
from typing import Optional

from sqlmodel import Session

from config import get_settings
from models import DeviceRequest, VerificationStatus
from services import devices, request_store, verification

logger = logging.getLogger(__name__)

DEVICE_NOT_AVAILABLE = "Device not available"
ALREADY_REQUESTED = "You already have an active request for this device"

VERIFICATION_REASONS = {
    VerificationStatus.unverified: "Account verification required before requesting devices",
    VerificationStatus.pending: "Account verification pending, please wait for admin review",
    VerificationStatus.rejected: "Account verification rejected, requests are not allowed",
}


def cap_reason(limit: int) -> str:
    return f"Maximum active requests ({limit}) reached"


@dataclass
class EligibilityResult:
    can_request: bool
    active_request_count: int
    reason: Optional[str] = None
    existing_request: Optional[DeviceRequest] = None


def can_request(session: Session, device_id: int, requester_id: int) -> EligibilityResult:
    """Decide whether ``requester_id`` may open a new request for ``device_id``.

    Checks run in a fixed order and the first failure supplies the reason:
    device availability, requester verification, duplicate open request,
    then the per-requester cap on open requests. An unknown device raises
    ``DeviceNotFound``. Nothing is cached; callers that go on to insert must
    evaluate this inside the inserting transaction.
    """
    limit = get_settings().max_open_requests

    device = devices.get_device(session, device_id)
    if not device.is_requestable:
        return EligibilityResult(
            can_request=False,
            reason=DEVICE_NOT_AVAILABLE,
            active_request_count=request_store.count_open_requests(session, requester_id),
        )

    gate = verification.get_verification_status(session, requester_id)
    active_count = request_store.count_open_requests(session, requester_id)
    if not gate.is_verified:
        return EligibilityResult(
            can_request=False,
            reason=VERIFICATION_REASONS[gate.status],
            active_request_count=active_count,
        )

    existing = request_store.find_open_request(session, device_id, requester_id)
    if existing is not None:
        return EligibilityResult(
            can_request=False,
            reason=ALREADY_REQUESTED,
            active_request_count=active_count,
            existing_request=existing,
        )

    if active_count >= limit:
        return EligibilityResult(
            can_request=False,
            reason=cap_reason(limit),
            active_request_count=active_count,
        )

    return EligibilityResult(can_request=True, active_request_count=active_count)

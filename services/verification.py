import logging
from dataclasses import dataclass
from typing import Optional

from sqlmodel import Session

from errors import UserNotFound, ValidationError
from models import User, VerificationStatus, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationResult:
    status: VerificationStatus
    is_verified: bool


def get_verification_status(session: Session, user_id: int) -> VerificationResult:
    """Read-only lookup of whether ``user_id`` may create device requests."""
    user = session.get(User, user_id)
    if user is None:
        raise UserNotFound()
    status = VerificationStatus(user.verification_status)
    return VerificationResult(status=status, is_verified=status == VerificationStatus.verified)


def set_verification_status(
    session: Session,
    user_id: int,
    status: str,
    notes: Optional[str] = None,
) -> User:
    """Admin action: move a user to a new verification status."""
    try:
        new_status = VerificationStatus(status)
    except ValueError:
        raise ValidationError(f"Invalid verification status: {status}")

    user = session.get(User, user_id)
    if user is None:
        raise UserNotFound()

    user.verification_status = new_status
    user.verification_notes = notes or None
    user.verified_at = utcnow() if new_status == VerificationStatus.verified else None
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("User %s verification status set to %s", user_id, new_status.value)
    return user

"""Typed failures raised by the request engine.

Each error carries a human-readable ``detail`` that callers may show verbatim.
``main.py`` maps them onto HTTP status codes via ``STATUS_CODES``.
"""
from typing import Optional


class DomainError(Exception):
    default_detail = "Operation failed"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(DomainError):
    default_detail = "Invalid input"


class UserNotFound(DomainError):
    default_detail = "User not found"


class DeviceNotFound(DomainError):
    default_detail = "Device not found"


class RequestNotFound(DomainError):
    default_detail = "Device request not found"


class IneligibleRequest(DomainError):
    default_detail = "Request not allowed"

    def __init__(
        self,
        reason: str,
        active_request_count: int = 0,
        existing_request_id: Optional[int] = None,
    ):
        super().__init__(reason)
        self.reason = reason
        self.active_request_count = active_request_count
        self.existing_request_id = existing_request_id


class InvalidTransition(DomainError):
    default_detail = "Invalid status transition"


class MissingRejectionReason(DomainError):
    default_detail = "A rejection reason is required"


class Forbidden(DomainError):
    default_detail = "Not allowed"


class ConflictError(DomainError):
    default_detail = "The request was modified concurrently, please retry"


STATUS_CODES = {
    ValidationError: 422,
    UserNotFound: 404,
    DeviceNotFound: 404,
    RequestNotFound: 404,
    IneligibleRequest: 400,
    InvalidTransition: 409,
    MissingRejectionReason: 422,
    Forbidden: 403,
    ConflictError: 409,
}


def status_code_for(exc: DomainError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 400

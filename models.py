from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VerificationStatus(str, Enum):
    unverified = "unverified"
    pending = "pending"
    verified = "verified"
    rejected = "rejected"


class DeviceStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class RequestStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    completed = "completed"


# pending and approved requests count toward the per-requester cap
OPEN_REQUEST_STATUSES = (RequestStatus.pending, RequestStatus.approved)


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    name: str
    is_donor: bool = False
    is_requester: bool = False
    is_admin: bool = False
    password_hash: str

    verification_status: VerificationStatus = VerificationStatus.unverified
    verification_notes: Optional[str] = None
    verified_at: Optional[datetime] = None

    # Bumped inside every request-creation transaction to serialize them per requester.
    request_seq: int = 0


class Device(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: int = Field(foreign_key="user.id", index=True)

    title: str
    description: str
    device_type: str
    condition: str
    status: DeviceStatus = Field(default=DeviceStatus.pending, index=True)
    is_active: bool = True
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    approved_at: Optional[datetime] = None

    @property
    def is_requestable(self) -> bool:
        return self.status == DeviceStatus.approved and self.is_active


class DeviceRequest(SQLModel, table=True):
    __table_args__ = (
        Index(
            "ix_devicerequest_open_pair",
            "device_id",
            "requester_id",
            unique=True,
            sqlite_where=text("status IN ('pending', 'approved')"),
            postgresql_where=text("status IN ('pending', 'approved')"),
        ),
        Index("ix_devicerequest_requester_status", "requester_id", "status"),
        Index("ix_devicerequest_device_status", "device_id", "status"),
        Index("ix_devicerequest_status_created", "status", "created_at"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    device_id: int = Field(foreign_key="device.id")
    requester_id: int = Field(foreign_key="user.id")

    message: str
    status: RequestStatus = RequestStatus.pending
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    reviewed_by_id: Optional[int] = Field(default=None, foreign_key="user.id")

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    approved_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    version: int = 1

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_REQUEST_STATUSES

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from models import DeviceStatus, RequestStatus, VerificationStatus


class UserCreate(BaseModel):
    email: EmailStr
    name: str = Field(min_length=1)
    password: str = Field(min_length=6)
    is_donor: bool = False
    is_requester: bool = False


class UserRead(BaseModel):
    id: int
    email: EmailStr
    name: str
    is_donor: bool
    is_requester: bool
    is_admin: bool
    verification_status: VerificationStatus

    model_config = ConfigDict(from_attributes=True)


class LoginData(BaseModel):
    email: EmailStr
    password: str

    role: Literal["donor", "requester", "admin"]


class VerificationRead(BaseModel):
    user_id: int
    status: VerificationStatus
    is_verified: bool


class VerificationUpdate(BaseModel):
    status: VerificationStatus
    notes: Optional[str] = None


class DeviceCreate(BaseModel):
    title: str = Field(min_length=3, max_length=200)
    description: str = Field(min_length=10, max_length=2000)
    device_type: Literal["laptop", "desktop", "tablet", "smartphone", "accessories", "other"]
    condition: Literal["excellent", "good", "fair", "poor", "old", "new", "used"]


class DeviceRead(BaseModel):
    id: int
    owner_id: int
    title: str
    description: str
    device_type: str
    condition: str
    status: DeviceStatus
    is_active: bool
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DeviceModeration(BaseModel):
    status: DeviceStatus
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None


class DeviceActiveUpdate(BaseModel):
    is_active: bool


class RequestCreate(BaseModel):
    device_id: int
    message: str


class RequestStatusUpdate(BaseModel):
    # Kept as a plain string so unknown values surface as a ValidationError
    # from the lifecycle service rather than a schema error.
    status: str
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None


class DeviceRequestRead(BaseModel):
    id: int
    device_id: int
    requester_id: int
    message: str
    status: RequestStatus
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    reviewed_by_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    approved_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    version: int

    model_config = ConfigDict(from_attributes=True)


class EligibilityRead(BaseModel):
    can_request: bool
    reason: Optional[str] = None
    active_request_count: int
    existing_request: Optional[DeviceRequestRead] = None


class RequestPage(BaseModel):
    items: List[DeviceRequestRead]
    total: int
    total_pages: int
    page: int
    page_size: int


class RequestStats(BaseModel):
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    completed: int = 0
    total: int = 0


class PublicDeviceRequest(BaseModel):
    id: int
    name: str
    message: str
    status: RequestStatus
    created_at: datetime
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None

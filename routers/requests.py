from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, Response
from sqlmodel import Session

from config import get_settings
from db import SessionDep
from models import DeviceRequest, DeviceStatus
from schemas import (
    DeviceRequestRead,
    EligibilityRead,
    PublicDeviceRequest,
    RequestCreate,
    RequestPage,
    RequestStats,
    RequestStatusUpdate,
)
from services import devices, eligibility, lifecycle, request_store
from .auth import AdminDep, UserRoleDep

router = APIRouter(tags=["requests"])

settings = get_settings()


def _is_admin(current: dict) -> bool:
    return current["role"] == "admin"


def _owns_device(session: Session, current: dict, device_id: int) -> bool:
    device = devices.find_device(session, device_id)
    return device is not None and device.owner_id == current["user"].id


def _can_view(session: Session, current: dict, req: DeviceRequest) -> bool:
    return (
        _is_admin(current)
        or req.requester_id == current["user"].id
        or _owns_device(session, current, req.device_id)
    )


@router.post("/", response_model=DeviceRequestRead, status_code=201)
def create_request(request_data: RequestCreate, session: SessionDep, current: UserRoleDep):
    if current["role"] != "requester":
        raise HTTPException(status_code=403, detail="Only requesters can request devices.")
    return lifecycle.create_request(
        session,
        device_id=request_data.device_id,
        requester_id=current["user"].id,
        message=request_data.message,
    )


@router.get("/can-request/{device_id}", response_model=EligibilityRead)
def can_request(device_id: int, session: SessionDep, current: UserRoleDep):
    result = eligibility.can_request(session, device_id, current["user"].id)
    existing = result.existing_request
    return EligibilityRead(
        can_request=result.can_request,
        reason=result.reason,
        active_request_count=result.active_request_count,
        existing_request=DeviceRequestRead.model_validate(existing) if existing else None,
    )


@router.get("/public/device/{device_id}", response_model=List[PublicDeviceRequest])
def public_device_requests(device_id: int, session: SessionDep):
    """
    Public view of who asked for an approved device. No login required.
    """
    device = devices.get_device(session, device_id)
    if device.status != DeviceStatus.approved:
        raise HTTPException(
            status_code=400,
            detail="Device is not available for viewing requests",
        )
    rows = request_store.list_for_device_with_names(session, device_id)
    return [
        PublicDeviceRequest(
            id=req.id,
            name=name,
            message=req.message,
            status=req.status,
            created_at=req.created_at,
            admin_notes=req.admin_notes,
            rejection_reason=req.rejection_reason,
        )
        for req, name in rows
    ]


@router.get("/", response_model=RequestPage)
def list_requests(
    session: SessionDep,
    current: UserRoleDep,
    requester_id: Optional[int] = None,
    device_id: Optional[int] = None,
    status: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
):
    """
    Paginated request listing, newest first.
    Admins may filter freely; donors may list requests for their own device;
    everyone else only sees their own requests.
    """
    if not _is_admin(current):
        if device_id is not None and _owns_device(session, current, device_id):
            pass
        elif requester_id is not None and requester_id != current["user"].id:
            raise HTTPException(
                status_code=403,
                detail="You can only view your own requests.",
            )
        else:
            requester_id = current["user"].id

    status_filter = lifecycle.parse_status(status) if status else None
    items, total, total_pages = request_store.list_requests(
        session,
        page=page,
        page_size=page_size,
        requester_id=requester_id,
        device_id=device_id,
        status=status_filter,
    )
    return RequestPage(
        items=[DeviceRequestRead.model_validate(item) for item in items],
        total=total,
        total_pages=total_pages,
        page=page,
        page_size=page_size,
    )


@router.get("/stats", response_model=RequestStats)
def request_stats(session: SessionDep, admin: AdminDep):
    counts = request_store.count_by_status(session)
    data = {status.value: count for status, count in counts.items()}
    return RequestStats(total=sum(counts.values()), **data)


@router.get("/{request_id}", response_model=DeviceRequestRead)
def get_request(request_id: int, session: SessionDep, current: UserRoleDep):
    req = request_store.get_request(session, request_id)
    if not _can_view(session, current, req):
        raise HTTPException(status_code=403, detail="You cannot view this request.")
    return req


@router.put("/{request_id}/status", response_model=DeviceRequestRead)
def update_request_status(
    request_id: int,
    update: RequestStatusUpdate,
    session: SessionDep,
    current: UserRoleDep,
):
    """
    Admin or the owner of the requested device moves the request along
    its lifecycle.
    """
    req = request_store.get_request(session, request_id)
    if not _is_admin(current) and not _owns_device(session, current, req.device_id):
        raise HTTPException(
            status_code=403,
            detail="You can only manage requests for your own devices.",
        )
    return lifecycle.set_status(
        session,
        request_id,
        update.status,
        admin_notes=update.admin_notes,
        rejection_reason=update.rejection_reason,
        actor_id=current["user"].id,
    )


@router.delete("/{request_id}", status_code=204)
def cancel_request(request_id: int, session: SessionDep, current: UserRoleDep):
    lifecycle.cancel(session, request_id, current["user"].id)
    return Response(status_code=204)

from fastapi import APIRouter, HTTPException

from db import SessionDep
from models import User
from schemas import UserRead, VerificationRead, VerificationUpdate
from services import verification
from .auth import AdminDep, UserRoleDep

router = APIRouter(tags=["users"])


@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: int, session: SessionDep, current: UserRoleDep):
    """
    Get a single user by ID.
    """
    user = session.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/{user_id}/verification", response_model=VerificationRead)
def get_verification(user_id: int, session: SessionDep, current: UserRoleDep):
    if current["role"] != "admin" and current["user"].id != user_id:
        raise HTTPException(
            status_code=403,
            detail="You can only view your own verification status.",
        )
    result = verification.get_verification_status(session, user_id)
    return VerificationRead(
        user_id=user_id, status=result.status, is_verified=result.is_verified
    )


@router.put("/{user_id}/verification", response_model=UserRead)
def update_verification(
    user_id: int,
    update: VerificationUpdate,
    session: SessionDep,
    admin: AdminDep,
):
    """
    Admin: set a user's verification status (unverified / pending / verified / rejected).
    """
    return verification.set_verification_status(
        session, user_id, update.status, update.notes
    )

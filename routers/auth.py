from typing import Annotated, Optional

from fastapi import APIRouter, Cookie, Depends, Header, HTTPException, Response
from itsdangerous import BadData, URLSafeTimedSerializer
from passlib.context import CryptContext
from sqlmodel import Session, select

from config import get_settings
from db import SessionDep
from models import User, VerificationStatus
from schemas import LoginData, UserCreate, UserRead

router = APIRouter(tags=["auth"])

settings = get_settings()
serializer = URLSafeTimedSerializer(settings.secret_key)


pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_session_token(user_id: int, role: str) -> str:
    """
    Store user_id + role in the signed token.
    Example data:
        {"user_id": 3, "role": "requester"}
    """
    return serializer.dumps({"user_id": user_id, "role": role})


def verify_session_token(token: str, max_age_seconds: Optional[int] = None):
    """
    Returns dict {'user_id': ..., 'role': ...} if valid,
    or None if token is invalid/expired.
    """
    if max_age_seconds is None:
        max_age_seconds = settings.session_max_age_seconds
    try:
        return serializer.loads(token, max_age=max_age_seconds)
    except BadData:
        return None


def _token_from_request(
    session_token: Optional[str], authorization: Optional[str]
) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return session_token


def get_current_user_and_role(
    session: SessionDep,
    session_token: Optional[str] = Cookie(default=None, alias="session"),
    authorization: Optional[str] = Header(default=None),
) -> dict:
    """
    Reads the bearer token or the 'session' cookie, verifies it,
    looks up the user, and returns {"user": User, "role": str}.
    Raises 401 if not logged in / invalid.
    """
    token = _token_from_request(session_token, authorization)
    if token is None:
        raise HTTPException(status_code=401, detail="Not logged in")

    data = verify_session_token(token)
    if not data:
        raise HTTPException(
            status_code=401, detail="Invalid or expired session")

    user = session.get(User, data["user_id"])
    if user is None:
        raise HTTPException(
            status_code=401, detail="User not found for this session")

    return {"user": user, "role": data["role"]}


UserRoleDep = Annotated[dict, Depends(get_current_user_and_role)]


def require_admin(current: UserRoleDep) -> dict:
    if current["role"] != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return current


AdminDep = Annotated[dict, Depends(require_admin)]


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key="session",
        value=token,
        httponly=True,
        secure=False,
        samesite="lax",
        max_age=settings.session_max_age_seconds,
    )


def create_admin(session: Session, email: str, name: str, password: str) -> User:
    """Create (or promote) an admin account; admins are always verified."""
    user = session.exec(select(User).where(User.email == email)).first()
    if user is None:
        user = User(email=email, name=name, password_hash=hash_password(password))
    user.is_admin = True
    user.verification_status = VerificationStatus.verified
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@router.post("/register", status_code=201)
def register(user_in: UserCreate, session: SessionDep, response: Response):
    """
    Register a new donor and/or requester with a hashed password.
    Admin accounts are never created here.
    """
    if user_in.is_donor:
        role = "donor"
    elif user_in.is_requester:
        role = "requester"
    else:
        raise HTTPException(
            status_code=400,
            detail="User must be registered as donor or requester",
        )

    existing = session.exec(
        select(User).where(User.email == user_in.email)
    ).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        email=user_in.email,
        name=user_in.name,
        password_hash=hash_password(user_in.password),
        is_donor=user_in.is_donor,
        is_requester=user_in.is_requester,
    )
    session.add(user)
    session.commit()
    session.refresh(user)

    if user.id is None:
        raise HTTPException(
            status_code=500, detail="User was not created successfully"
        )

    token = create_session_token(user.id, role)
    _set_session_cookie(response, token)
    return {
        "message": "Registration successful",
        "role": role,
        "access_token": token,
        "user": UserRead.model_validate(user),
    }


@router.post("/login")
def login(payload: LoginData, session: SessionDep, response: Response):
    """
    Log in with email + password + chosen role ("donor" / "requester" / "admin").
    The token is set as a signed cookie and also returned for bearer use.
    """
    user = session.exec(
        select(User).where(User.email == payload.email)
    ).first()

    if user is None or not verify_password(payload.password, user.password_hash):
        raise HTTPException(
            status_code=400, detail="Invalid email or password"
        )

    allowed = {
        "donor": user.is_donor,
        "requester": user.is_requester,
        "admin": user.is_admin,
    }
    if not allowed[payload.role]:
        raise HTTPException(
            status_code=400, detail=f"User is not registered as {payload.role}"
        )

    if user.id is None:
        raise HTTPException(
            status_code=500, detail="User has no ID in database"
        )

    token = create_session_token(user.id, payload.role)
    _set_session_cookie(response, token)
    return {"message": "Login successful", "role": payload.role, "access_token": token}


@router.post("/logout")
def logout(response: Response):
    """
    Clear the session cookie.
    """
    response.delete_cookie("session")
    return {"message": "Logged out"}


@router.get("/me")
def read_me(current: UserRoleDep):
    """
    Get info about the currently logged-in user + active role.
    """
    user = current["user"]
    data = UserRead.model_validate(user).model_dump()
    data["role"] = current["role"]
    return data

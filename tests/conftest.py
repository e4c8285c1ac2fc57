import os
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")
import itertools

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from db import get_session
from main import app
from models import Device, DeviceStatus, User, VerificationStatus
from routers.auth import create_session_token, hash_password

_ids = itertools.count(1)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine):
    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_user(
    session,
    *,
    verification=VerificationStatus.verified,
    is_donor=False,
    is_requester=True,
    is_admin=False,
):
    n = next(_ids)
    user = User(
        email=f"user{n}@example.com",
        name=f"User {n}",
        password_hash=hash_password("secret123"),
        is_donor=is_donor,
        is_requester=is_requester,
        is_admin=is_admin,
        verification_status=verification,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def make_device(session, owner, *, status=DeviceStatus.approved, is_active=True):
    device = Device(
        owner_id=owner.id,
        title="ThinkPad T480",
        description="Working laptop with charger included",
        device_type="laptop",
        condition="good",
        status=status,
        is_active=is_active,
    )
    session.add(device)
    session.commit()
    session.refresh(device)
    return device


def auth_headers(user, role):
    return {"Authorization": f"Bearer {create_session_token(user.id, role)}"}


@pytest.fixture
def donor(session):
    return make_user(session, is_donor=True, is_requester=False)


@pytest.fixture
def requester(session):
    return make_user(session)


@pytest.fixture
def admin(session):
    return make_user(session, is_requester=False, is_admin=True)

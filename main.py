import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlmodel import Session

from config import get_settings
from db import create_db_and_tables, engine
from errors import DomainError, IneligibleRequest, status_code_for
from routers import auth, devices, requests, users

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def bootstrap_admin() -> None:
    if not settings.admin_email or not settings.admin_password:
        return
    with Session(engine) as session:
        admin = auth.create_admin(
            session, settings.admin_email, settings.admin_name, settings.admin_password
        )
        logger.info("Admin account %s ready", admin.email)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    bootstrap_admin()
    yield


app = FastAPI(title="Device Donation", version="1.0.0", lifespan=lifespan)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    body = {"detail": exc.detail, "error": type(exc).__name__}
    if isinstance(exc, IneligibleRequest):
        body["active_request_count"] = exc.active_request_count
        body["existing_request_id"] = exc.existing_request_id
    return JSONResponse(status_code=status_code_for(exc), content=body)


app.include_router(auth.router)
app.include_router(users.router, prefix="/users")
app.include_router(devices.router, prefix="/devices")
app.include_router(requests.router, prefix="/requests")


@app.get("/")
def read_root():
    return {"message": "Device Donation API", "docs": "/docs"}

import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError

from eventreg.config import settings
from eventreg.database import Base, SessionLocal, engine
from eventreg.exception_handlers import setup_exception_handlers
from eventreg.logging_config import setup_logging
from eventreg.models import (  # noqa: F401  register tables with Base.metadata
    audit_log,
    email_verification,
    event,
    participant,
    password_reset_token,
    registration,
    student,
    student_skill,
    user,
)
from eventreg.models.user import User, UserRole
from eventreg.routers import auth, events, participants, students, users
from eventreg.services.scheduler import jobs
from eventreg.utils.hashing import hash_password

setup_logging()
logger = logging.getLogger("eventreg")


# create tables if missing
Base.metadata.create_all(bind=engine)


def seed_admin_user():
    """Create the configured admin account on a fresh deployment."""
    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
        return

    db = SessionLocal()
    try:
        if db.query(User).filter(User.role == UserRole.ADMIN.value).count() > 0:
            return
        db.add(User(
            email=settings.ADMIN_EMAIL,
            password_hash=hash_password(settings.ADMIN_PASSWORD),
            role=UserRole.ADMIN.value,
            is_email_verified=True,
        ))
        db.commit()
        logger.info("Default admin user %s created", settings.ADMIN_EMAIL)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Failed to seed admin user: %s", e)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    seed_admin_user()
    if settings.CLEANUP_ENABLED:
        await jobs.start()
    yield
    await jobs.stop()


app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    try:
        response = await call_next(request)
        ms = int((time.time() - start) * 1000)
        logger.info("%s %s -> %s (%dms)", request.method, request.url.path, response.status_code, ms)
        return response
    except Exception:
        ms = int((time.time() - start) * 1000)
        logger.exception("Unhandled error %s %s (%dms)", request.method, request.url.path, ms)
        raise


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)

# uploaded posters and profile photos
Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")

# Routers
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(students.router)
app.include_router(events.router)
app.include_router(participants.router)


@app.get("/")
def root():
    return {"message": "Event registration backend is running!"}

"""Shared fixtures.

Settings are read at import time, so the environment is prepared before any
eventreg module is imported. Each test gets its own in-memory SQLite database
and upload directory.
"""

import os
import tempfile

_TMP = tempfile.mkdtemp(prefix="eventreg-tests-")
os.environ["JWT_SECRET"] = "test-jwt-secret-for-testing-only"
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'app.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP, "uploads")
os.environ["LOG_DIR"] = os.path.join(_TMP, "logs")
os.environ["PASSWORD_HASH_ROUNDS"] = "4"
os.environ["CLEANUP_ENABLED"] = "false"
os.environ["MAIL_HOST"] = ""
os.environ["ADMIN_EMAIL"] = ""

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from eventreg.config import settings  # noqa: E402
from eventreg.database import Base, get_db  # noqa: E402
from eventreg.main import app  # noqa: E402
from eventreg.models.user import User, UserRole  # noqa: E402
from eventreg.utils.auth import create_access_token  # noqa: E402
from eventreg.utils.cache import cache  # noqa: E402
from eventreg.utils.hashing import hash_password  # noqa: E402

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
DEFAULT_PASSWORD = "Secret123"


@pytest.fixture(autouse=True)
def _isolated_state(tmp_path, monkeypatch):
    """Fresh cache and upload directory for every test."""
    cache.clear()
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path / "uploads"))
    yield
    cache.clear()


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def create_user(session_factory):
    """Insert a user directly and return it detached (id, email and role stay readable)."""

    def _create(
        email="jane@university.edu",
        password=DEFAULT_PASSWORD,
        role=UserRole.USER,
        verified=True,
        username=None,
    ) -> User:
        with session_factory() as db:
            user = User(
                email=email,
                username=username,
                password_hash=hash_password(password),
                role=role.value,
                is_email_verified=verified,
            )
            db.add(user)
            db.commit()
            db.refresh(user)
            db.expunge(user)
            return user

    return _create


def bearer(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def admin(create_user):
    return create_user(email="admin@university.edu", role=UserRole.ADMIN, username="admin")


@pytest.fixture
def admin_headers(admin):
    return bearer(admin)

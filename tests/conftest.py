import importlib
import os

os.environ["APP_ENV"] = "development"
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("IDENTITY_STORE", "database")

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mkrfoods import config
from mkrfoods.database.database import Base, get_db
from mkrfoods.dependencies import otp as otp_deps
from mkrfoods.main import app
from mkrfoods.models import models  # noqa: F401
from mkrfoods.schemas.enums import OtpPurpose
from mkrfoods.utils.errors import DeliveryError
from mkrfoods.utils.identity import DatabaseIdentityStore
from mkrfoods.utils.otp_manager import OtpManager
from mkrfoods.utils.otp_store import MemoryOtpStore, SqlOtpStore


class FrozenClock:
    def __init__(self, start=None):
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


class RecordingSender:
    """Keeps every delivered code so tests can read what the user would receive."""

    def __init__(self):
        self.sent = []
        self.fail_with = None

    def send(self, identity, code, purpose=OtpPurpose.SEND):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((identity, code, purpose))

    def last_code(self, identity=None):
        for sent_identity, code, _ in reversed(self.sent):
            if identity is None or sent_identity == identity:
                return code
        raise AssertionError(f"no code sent to {identity}")


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def failing_sender():
    s = RecordingSender()
    s.fail_with = DeliveryError("Failed to deliver OTP. Please try again.", detail="smtp down")
    return s


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def managers(session_factory, sender, clock):
    return {
        "email": OtpManager(MemoryOtpStore(), sender, 300, flow="email", clock=clock),
        "signup": OtpManager(
            SqlOtpStore(session_factory, "signup"), sender, 600, flow="signup", require_pending=True, clock=clock
        ),
        "mobile": OtpManager(MemoryOtpStore(), sender, 300, flow="mobile", clock=clock),
    }


@pytest.fixture
def client(managers, session_factory):
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[otp_deps.get_email_otp_manager] = lambda: managers["email"]
    app.dependency_overrides[otp_deps.get_signup_otp_manager] = lambda: managers["signup"]
    app.dependency_overrides[otp_deps.get_mobile_otp_manager] = lambda: managers["mobile"]
    app.dependency_overrides[otp_deps.get_identity_store] = lambda: DatabaseIdentityStore(session_factory)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def production(monkeypatch):
    monkeypatch.setattr(config, "IS_DEVELOPMENT", False)


@pytest.fixture
def unset_app_env(monkeypatch):
    """Reload config as a deployment with neither APP_ENV nor NODE_ENV set would see it."""
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.delenv("NODE_ENV", raising=False)
    importlib.reload(config)
    yield config
    monkeypatch.undo()
    importlib.reload(config)

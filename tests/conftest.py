"""
Test configuration for the Introspect backend.
"""
import asyncio
import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "app-secret-not-used-by-tests"
os.environ["ENVIRONMENT"] = "development"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["CLOUDINARY_CLOUD_NAME"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from introspect import main
from introspect.auth import repository as user_repository
from introspect.auth.models import UserRole
from introspect.core.events import DiagnosticResultAvailable, event_bus
from introspect.core.security import TokenService, get_token_service, hash_password
from introspect.database import Base, get_db
from introspect.main import app
from introspect.notifications.alerts import register_result_alerts
from introspect.notifications.dispatcher import NotificationDispatcher, get_dispatcher
from introspect.notifications.senders import SendResult
from introspect.patients import repository as patient_repository

TEST_DATABASE_URL = "sqlite://"
TEST_SECRET_KEY = "test-secret-key-for-this-run"
DEFAULT_PASSWORD = "Password123!"

# Create test database engine
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Create test session factory
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class RecordingSender:
    """
    Sender double that records every call.

    Queue ``SendResult`` values or exceptions on ``outcomes`` to script
    failures; set ``delay`` to make the call slow.
    """

    def __init__(self):
        self.configured = True
        self.sent = []
        self.outcomes = []
        self.delay = 0.0

    async def _deliver(self, call):
        self.sent.append(call)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return SendResult(success=True)


class RecordingSmsSender(RecordingSender):
    async def send_sms(self, recipient, message):
        return await self._deliver({"recipient": recipient, "message": message})


class RecordingEmailSender(RecordingSender):
    async def send_email(self, recipient, subject, message):
        return await self._deliver({"recipient": recipient, "subject": subject, "message": message})


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def db():
    """
    Create a fresh database for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def token_service():
    return TokenService(secret_key=TEST_SECRET_KEY)


@pytest.fixture
def sms_sender():
    return RecordingSmsSender()


@pytest.fixture
def email_sender():
    return RecordingEmailSender()


@pytest.fixture
def dispatcher(sms_sender, email_sender):
    return NotificationDispatcher(sms_sender, email_sender, timeout_seconds=0.2, lock_timeout_seconds=60)


@pytest.fixture
def make_user(db, token_service):
    """
    Factory creating a stored identity.

    Returns (user, token) where token is a valid session token for the user.
    """
    counter = {"n": 0}

    def _make_user(role=UserRole.FIELD_WORKER, email=None, password=DEFAULT_PASSWORD, **fields):
        counter["n"] += 1
        user = user_repository.create_user(
            db,
            email=email or f"{role.value}{counter['n']}@example.com",
            full_name=fields.pop("full_name", f"Test {role.value.replace('_', ' ').title()}"),
            password_hash=hash_password(password),
            role=role,
            **fields,
        )
        db.commit()
        db.refresh(user)
        return user, token_service.issue(user)

    return _make_user


@pytest.fixture
def field_worker(make_user):
    return make_user(UserRole.FIELD_WORKER, phone_number="+254700000001")


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN)


@pytest.fixture
def super_admin(make_user):
    return make_user(UserRole.SUPER_ADMIN)


@pytest.fixture
def make_patient(db, admin):
    """
    Factory creating a registered patient, recorded as registered by the admin fixture.
    """
    counter = {"n": 0}

    def _make_patient(patient_code=None, **fields):
        counter["n"] += 1
        patient = patient_repository.create_patient(
            db,
            patient_code=patient_code or f"PT-{counter['n']:04d}",
            created_by_id=admin[0].id,
            **fields,
        )
        db.commit()
        db.refresh(patient)
        return patient

    return _make_patient


@pytest.fixture
def patient(make_patient):
    return make_patient(age=34, district="Kisumu")


@pytest.fixture(scope="function")
def client(db, token_service, dispatcher):
    """
    Create a test client with a test database session, token service and senders.
    """
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_token_service] = lambda: token_service
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher

    # Route result alerts to the test database and senders
    event_bus.unsubscribe(DiagnosticResultAvailable, main.result_alert_handler)
    alert_handler = register_result_alerts(event_bus, TestingSessionLocal, dispatcher)

    with TestClient(app) as client:
        yield client

    event_bus.unsubscribe(DiagnosticResultAvailable, alert_handler)
    event_bus.subscribe(DiagnosticResultAvailable, main.result_alert_handler)
    app.dependency_overrides = {}

import os
import re
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure predictable environment variables for tests before importing the app.
BASE_DIR = Path(__file__).resolve().parents[1]
TEST_DB_PATH = BASE_DIR / "test.db"

if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

os.environ.setdefault("DATABASE_URL", f"sqlite:///{TEST_DB_PATH}")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("OTP_SWEEP_AUTO_ENABLED", "false")
os.environ.setdefault("SEED_DEMO_DOCTORS", "false")
os.environ.setdefault("ADMIN_EMAIL", "admin@example.com")
os.environ.setdefault("ADMIN_PASSWORD", "admin-pass-123")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "rzp_test_secret")
os.environ.setdefault("RAZORPAY_WEBHOOK_SECRET", "rzp_webhook_secret")

import app.main as main  # noqa: E402  (import after env vars are set)
from app.database import Base, SessionLocal, engine  # noqa: E402
from app.models.doctor import Doctor  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services import notification_service  # noqa: E402
from app.services.auth_service import hash_password  # noqa: E402
from app.services.otp_ledger import otp_store  # noqa: E402
from app.utils.errors import UpstreamError  # noqa: E402

CODE_PATTERN = re.compile(r"\b(\d{6})\b")


class Outbox:
    """Records emails and texts instead of sending them."""

    def __init__(self):
        self.emails = []
        self.sms = []
        self.failing = set()

    async def send_email(self, to_email, subject, html):
        if to_email in self.failing:
            raise UpstreamError(f"Could not send email to {to_email}")
        self.emails.append({"to": to_email, "subject": subject, "html": html})

    async def send_sms(self, to_phone, body):
        if to_phone in self.failing:
            raise UpstreamError("Could not send SMS")
        self.sms.append({"to": to_phone, "body": body})
        return "SM-test"

    def emails_to(self, address):
        return [message for message in self.emails if message["to"] == address]

    def last_email_code(self, address):
        message = self.emails_to(address)[-1]
        return CODE_PATTERN.search(message["html"]).group(1)

    def last_sms_code(self, phone):
        message = [item for item in self.sms if item["to"] == phone][-1]
        return CODE_PATTERN.search(message["body"]).group(1)


@pytest.fixture(autouse=True)
def clean_state():
    Base.metadata.create_all(bind=engine)
    otp_store.clear()
    yield
    otp_store.clear()
    with engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture()
def outbox(monkeypatch):
    box = Outbox()
    monkeypatch.setattr(notification_service, "send_email_async", box.send_email)
    monkeypatch.setattr(notification_service, "send_sms", box.send_sms)
    return box


@pytest.fixture()
def client(monkeypatch, outbox):
    """Provide a TestClient with startup tasks patched out for isolation."""
    monkeypatch.setattr(main, "run_seed", lambda: None)

    async def _noop_async(*args, **kwargs):
        return None

    monkeypatch.setattr(main.expiry_sweeper, "start", _noop_async)
    monkeypatch.setattr(main.expiry_sweeper, "stop", _noop_async)

    with TestClient(main.app) as test_client:
        yield test_client


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def create_doctor(db, email="doc@example.com", password="doctor-pass-1", available=True, fees=500.0, **overrides):
    doctor = Doctor(
        name=overrides.pop("name", "Dr. Test"),
        email=email,
        password=hash_password(password),
        image="https://cdn.example.com/doc.png",
        speciality="General physician",
        speciality_list=["General physician"],
        degree="MBBS",
        experience="4 Years",
        about="Test doctor",
        fees=fees,
        address={"line1": "Street 1", "line2": "City"},
        languages=["English"],
        available=available,
        slots_booked={},
        slots_version=0,
        available_slots={},
        **overrides,
    )
    db.add(doctor)
    db.commit()
    db.refresh(doctor)
    return doctor


def create_user(db, email="patient@example.com", password="patient-pass-1", phone="+919876543210", verified=True):
    user = User(
        name="Pat Patient",
        email=email,
        password=hash_password(password),
        phone=phone,
        is_email_verified=verified,
        is_mobile_verified=verified,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def make_doctor(db):
    def factory(**kwargs):
        return create_doctor(db, **kwargs)

    return factory


@pytest.fixture()
def make_user(db):
    def factory(**kwargs):
        return create_user(db, **kwargs)

    return factory


@pytest.fixture()
def user_token(client, make_user):
    user = make_user()
    response = client.post("/api/user/login", json={"email": user.email, "password": "patient-pass-1"})
    return user, response.json()["token"]


@pytest.fixture()
def doctor_login(client, outbox):
    def login(doctor, password="doctor-pass-1"):
        client.post("/api/doctor/login", json={"email": doctor.email, "password": password})
        code = outbox.last_email_code(doctor.email)
        response = client.post("/api/doctor/verify-login-otp", json={"email": doctor.email, "otp": code})
        return response.json()["token"]

    return login


@pytest.fixture()
def admin_token(client, outbox):
    client.post(
        "/api/admin/login",
        json={"email": os.environ["ADMIN_EMAIL"], "password": os.environ["ADMIN_PASSWORD"]},
    )
    code = outbox.last_email_code(os.environ["ADMIN_EMAIL"])
    response = client.post("/api/admin/verify-login-otp", json={"otp": code})
    return response.json()["token"]

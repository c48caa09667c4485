import os
import tempfile
import threading
from concurrent.futures import Future

# Configure the test database before the application is imported
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///" + os.path.join(
    tempfile.mkdtemp(prefix="prescripto-tests-"), "test.db"
)

import pytest
from fastapi.testclient import TestClient

from prescripto.main import app
from prescripto.api.deps import get_email_client
from prescripto.core.config import settings
from prescripto.core.database import Base, SessionLocal, engine, get_redis
from prescripto.core.email import EmailClient
from prescripto.core.security import get_password_hash
from prescripto.models.doctor import Doctor
from prescripto.models.user import User


class RecordingEmailClient(EmailClient):
    """Email client that records messages instead of talking to SMTP.

    Dispatched mail is sent inline so tests can inspect ``sent`` right after
    the call; pass ``inline=False`` to go through the worker pool.
    """

    def __init__(self, deliver: bool = True, inline: bool = True):
        super().__init__(
            host="smtp.test",
            port=587,
            username="mailer",
            password="secret",
            from_address="Prescripto <no-reply@prescripto.com>",
            frontend_url="http://frontend.test/",
        )
        self.deliver = deliver
        self.inline = inline
        self.sent = []

    def dispatch(self, description, send_func, *args, **kwargs):
        if not self.inline:
            return super().dispatch(description, send_func, *args, **kwargs)
        future = Future()
        future.set_result(send_func(*args, **kwargs))
        return future

    def send(self, to, subject, html_content):
        self.sent.append({"to": to, "subject": subject, "html": html_content})
        return self.deliver


class GatedEmailClient(RecordingEmailClient):
    """Worker-pool client whose sends block until ``gate`` is set."""

    def __init__(self):
        super().__init__(inline=False)
        self.gate = threading.Event()

    def send(self, to, subject, html_content):
        self.gate.wait(timeout=10)
        return super().send(to, subject, html_content)


class InMemoryRedis:
    """Just enough of the Redis API for the rate limiter."""

    def __init__(self):
        self.data = {}

    def setex(self, key, time, value):
        self.data[key] = str(value)
        return True

    def get(self, key):
        return self.data.get(key)

    def incr(self, key):
        self.data[key] = str(int(self.data.get(key, "0")) + 1)
        return int(self.data[key])


TEST_PASSWORD = "password123"
DOCTOR_PASSWORD = "doctorpass123"


@pytest.fixture(autouse=True)
def test_db():
    # Register every model before creating tables
    from prescripto.models import appointment, doctor, user  # noqa: F401

    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def email_client():
    return RecordingEmailClient()


@pytest.fixture
def gated_email_client(client):
    gated = GatedEmailClient()
    app.dependency_overrides[get_email_client] = lambda: gated
    yield gated
    gated.gate.set()
    gated.shutdown(wait=True)


@pytest.fixture
def redis_double():
    return InMemoryRedis()


@pytest.fixture
def client(email_client, redis_double):
    app.dependency_overrides[get_email_client] = lambda: email_client
    app.dependency_overrides[get_redis] = lambda: redis_double
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_doctor(db):
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        data = {
            "name": f"Dr. Test {counter['n']}",
            "email": f"doctor{counter['n']}@prescripto.com",
            "password_hash": get_password_hash(DOCTOR_PASSWORD),
            "image": "https://img.test/doc.png",
            "speciality": "General physician",
            "degree": "MBBS",
            "experience": "4 Years",
            "about": "Committed to preventive care.",
            "fees": 50.0,
            "address": {"line1": "17th Cross", "line2": "Richmond, London"},
            "available": True,
            "slots_booked": {},
        }
        data.update(overrides)
        doctor = Doctor(**data)
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
        return doctor

    return _make


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        data = {
            "name": f"Patient {counter['n']}",
            "email": f"patient{counter['n']}@gmail.com",
            "password_hash": get_password_hash(TEST_PASSWORD),
            "is_email_verified": True,
        }
        data.update(overrides)
        user = User(**data)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def disable_verification(monkeypatch):
    monkeypatch.setattr(settings, "DISABLE_EMAIL_VERIFICATION", True)


def login_headers(client, email, password=TEST_PASSWORD):
    response = client.post("/api/user/login", json={"email": email, "password": password})
    assert response.json()["success"] is True, response.json()
    return {"Authorization": f"Bearer {response.json()['token']}"}


def doctor_headers(client, email, password=DOCTOR_PASSWORD):
    response = client.post("/api/doctor/login", json={"email": email, "password": password})
    assert response.json()["success"] is True, response.json()
    return {"dtoken": response.json()["token"]}


def admin_headers(client):
    response = client.post(
        "/api/admin/login",
        json={"email": settings.ADMIN_EMAIL, "password": settings.ADMIN_PASSWORD},
    )
    assert response.json()["success"] is True, response.json()
    return {"atoken": response.json()["token"]}

import os
import re

# Keep the module-level app in storefront.main away from the working directory
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from storefront.core.config import Settings
from storefront.core.errors import DeliveryError
from storefront.main import create_app

ADMIN_EMAIL = "admin@shop.test"
ADMIN_PASSWORD = "Sup3r-Secret"


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSMS:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to, body):
        if self.fail:
            raise DeliveryError("SMS delivery failed")
        self.sent.append((to, body))

    def last_code(self):
        return re.search(r"\d{6}", self.sent[-1][1]).group(0)


class FakeMail:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to, subject, body, html=None):
        if self.fail:
            raise DeliveryError("Failed to send verification email")
        self.sent.append((to, subject, body, html))

    def last_code(self):
        return re.search(r"\d{6}", self.sent[-1][2]).group(0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sms():
    return FakeSMS()


@pytest.fixture
def mail():
    return FakeMail()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        DATABASE_URL="sqlite://",
        JWT_ACCESS_SECRET="test-access-secret",
        JWT_REFRESH_SECRET="test-refresh-secret",
        ADMIN_EMAIL=ADMIN_EMAIL,
        ADMIN_PASSWORD=ADMIN_PASSWORD,
        BCRYPT_ROUNDS=4,
    )


@pytest.fixture
def engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def db_session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def app(settings, sms, mail, engine, clock):
    return create_app(settings, sms_transport=sms, mail_transport=mail, engine=engine, clock=clock)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def register_user(client):
    def _register(username="alice", email="alice@example.com", password="pa55word!",
                  phonenumber="919876543210"):
        response = client.post("/api/auth/register", json={
            "username": username,
            "email": email,
            "password": password,
            "phonenumber": phonenumber,
        })
        assert response.status_code == 201, response.text
        return response.json()["data"]
    return _register

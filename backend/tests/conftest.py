import os
import sys
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("ENV", "dev")
os.environ.setdefault("SEED_ENABLED", "false")

import gameauth.models  # noqa: E402,F401
from gameauth.core import security  # noqa: E402
from gameauth.core.clock import FrozenClock, get_clock  # noqa: E402
from gameauth.db.base import Base  # noqa: E402
from gameauth.db.session import SessionLocal, engine  # noqa: E402

# bcrypt is slow and irrelevant to token lifecycle tests
security.pwd_context.hash = lambda pw: f"hashed:{pw[:72]}"
security.pwd_context.verify = lambda plain, hashed: hashed == f"hashed:{plain[:72]}"

from main import app  # noqa: E402

PASSWORD = "Alice123!"


@pytest.fixture()
def clock():
    return FrozenClock(datetime.now(timezone.utc))


@pytest.fixture()
def tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db(tables):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(tables, clock):
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def register(client, username="alice", email=None, password=PASSWORD):
    response = client.post(
        "/api/v1/auth/register",
        json={
            "username": username,
            "email": email or f"{username}@example.com",
            "password": password,
        },
    )
    assert response.status_code == 200, response.text
    return response.json()


def login(client, username="alice", password=PASSWORD):
    return client.post(
        "/api/v1/auth/login",
        json={"username": username, "password": password},
    )


def refresh(client, access_token, refresh_token):
    return client.post(
        "/api/v1/auth/refresh",
        json={"accessToken": access_token, "refreshToken": refresh_token},
    )


def bearer(access_token):
    return {"Authorization": f"Bearer {access_token}"}

from datetime import timedelta

from conftest import bearer, login, register
from gameauth.core.config import settings


def test_login_and_me(client):
    register(client, "alice")

    login_response = login(client, "alice")
    assert login_response.status_code == 200
    data = login_response.json()
    assert "accessToken" in data
    assert "refreshToken" in data

    me_response = client.get(
        "/api/v1/auth/me",
        headers=bearer(data["accessToken"]),
    )
    assert me_response.status_code == 200
    me = me_response.json()
    assert me["email"] == "alice@example.com"
    assert me["username"] == "alice"
    assert me["lastLoginAt"] is not None


def test_me_requires_bearer_token(client):
    assert client.get("/api/v1/auth/me").status_code == 401
    assert client.get("/api/v1/auth/me", headers=bearer("garbage")).status_code == 401


def test_me_rejects_access_token_once_clock_passes_expiry(client, clock):
    token = register(client, "alice")["accessToken"]

    clock.advance(timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS, seconds=-1))
    assert client.get("/api/v1/auth/me", headers=bearer(token)).status_code == 200

    clock.advance(timedelta(seconds=1))
    response = client.get("/api/v1/auth/me", headers=bearer(token))
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"

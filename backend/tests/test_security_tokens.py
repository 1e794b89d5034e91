import base64
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from fastapi import HTTPException
from jose import jwt

from gameauth.core.config import settings
from gameauth.core.security import (
    ALGORITHM,
    create_access_token,
    decode_access_token,
    generate_refresh_token,
    get_principal_from_expired_token,
)


def _user():
    return SimpleNamespace(id="user-1", username="alice", email="alice@example.com")


def test_access_token_uses_hs256_and_carries_claims():
    now = datetime.now(timezone.utc)
    token = create_access_token(_user(), now)

    assert jwt.get_unverified_header(token)["alg"] == "HS256"
    claims = jwt.get_unverified_claims(token)
    assert claims["sub"] == "user-1"
    assert claims["unique_name"] == "alice"
    assert claims["email"] == "alice@example.com"
    assert claims["jti"]
    assert claims["exp"] - claims["iat"] == settings.ACCESS_TOKEN_EXPIRE_HOURS * 3600


def test_access_tokens_get_distinct_ids():
    now = datetime.now(timezone.utc)
    first = jwt.get_unverified_claims(create_access_token(_user(), now))
    second = jwt.get_unverified_claims(create_access_token(_user(), now))
    assert first["jti"] != second["jti"]


def test_decode_access_token_round_trip():
    claims = decode_access_token(create_access_token(_user()))
    assert claims.sub == "user-1"
    assert claims.username == "alice"


def test_decode_access_token_rejects_expired_token():
    issued = datetime.now(timezone.utc) - timedelta(
        hours=settings.ACCESS_TOKEN_EXPIRE_HOURS, seconds=1
    )
    token = create_access_token(_user(), issued)

    with pytest.raises(HTTPException) as exc_info:
        decode_access_token(token)
    assert exc_info.value.status_code == 401


def test_expired_token_still_identifies_its_owner():
    issued = datetime.now(timezone.utc) - timedelta(days=3)
    token = create_access_token(_user(), issued)

    claims = get_principal_from_expired_token(token)
    assert claims is not None
    assert claims.sub == "user-1"
    assert claims.email == "alice@example.com"


def test_expired_path_rejects_foreign_signature():
    claims = jwt.get_unverified_claims(create_access_token(_user()))
    forged = jwt.encode(claims, "another-secret-another-secret-0000", algorithm=ALGORITHM)

    assert get_principal_from_expired_token(forged) is None
    with pytest.raises(HTTPException):
        decode_access_token(forged)


def test_expired_path_rejects_other_algorithm_with_same_key():
    claims = jwt.get_unverified_claims(create_access_token(_user()))
    token = jwt.encode(claims, settings.SECRET_KEY, algorithm="HS512")

    assert get_principal_from_expired_token(token) is None
    with pytest.raises(HTTPException):
        decode_access_token(token)


@pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c", None])
def test_expired_path_rejects_malformed_input(garbage):
    assert get_principal_from_expired_token(garbage) is None


def test_expired_path_rejects_token_missing_claims():
    token = jwt.encode({"sub": "user-1"}, settings.SECRET_KEY, algorithm=ALGORITHM)
    assert get_principal_from_expired_token(token) is None


def test_refresh_token_secret_shape():
    now = datetime.now(timezone.utc)
    token = generate_refresh_token(now)

    assert len(base64.b64decode(token.token)) == 64
    assert token.created_at == now
    assert token.expires_at == now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    assert token.revoked_at is None
    assert token.replaced_by_token is None


def test_refresh_tokens_are_unique_when_generated_concurrently():
    with ThreadPoolExecutor(max_workers=8) as pool:
        tokens = list(pool.map(lambda _: generate_refresh_token().token, range(500)))
    assert len(set(tokens)) == 500


def test_decode_access_token_checks_expiry_against_given_time():
    issued = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
    token = create_access_token(_user(), issued)
    lifetime = timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS)

    assert decode_access_token(token, issued + lifetime - timedelta(seconds=1)).sub == "user-1"
    with pytest.raises(HTTPException):
        decode_access_token(token, issued + lifetime)

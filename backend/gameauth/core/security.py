import base64
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError
from sqlalchemy.orm import Session

from gameauth.core.clock import Clock, get_clock, system_clock
from gameauth.core.config import settings
from gameauth.db.session import get_db
from gameauth.models.refresh_token import RefreshToken
from gameauth.models.user import User
from gameauth.schemas.token import TokenClaims

ALGORITHM = "HS256"
REFRESH_TOKEN_BYTES = 64

# Claim names are fixed here once; nothing remaps them per request.
CLAIM_SUBJECT = "sub"
CLAIM_USERNAME = "unique_name"
CLAIM_EMAIL = "email"
CLAIM_TOKEN_ID = "jti"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def access_token_expires_at(now: datetime) -> datetime:
    return now + timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS)


def create_access_token(user: User, now: Optional[datetime] = None) -> str:
    now = now or system_clock.now()
    to_encode: Dict[str, Any] = {
        CLAIM_SUBJECT: user.id,
        CLAIM_USERNAME: user.username,
        CLAIM_EMAIL: user.email,
        CLAIM_TOKEN_ID: uuid4().hex,
        "iat": now,
        "exp": access_token_expires_at(now),
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def generate_refresh_token(now: Optional[datetime] = None) -> RefreshToken:
    """New opaque refresh token; not attached to any user yet."""
    now = now or system_clock.now()
    value = base64.b64encode(secrets.token_bytes(REFRESH_TOKEN_BYTES)).decode("ascii")
    return RefreshToken(
        token=value,
        created_at=now,
        expires_at=now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        revoked_at=None,
    )


def _has_expected_algorithm(token: str) -> bool:
    header = jwt.get_unverified_header(token)
    return header.get("alg") == ALGORITHM


def decode_access_token(token: str, now: Optional[datetime] = None) -> TokenClaims:
    """
    Full bearer validation: signature, algorithm, issuer, audience, expiry.

    Expiry is compared against ``now`` (the injected clock in requests) with
    zero leeway, so a token stops working at exactly its ``exp`` second.
    """
    now = now or system_clock.now()
    try:
        if not _has_expected_algorithm(token):
            raise JWTError("Unexpected signing algorithm")
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
            options={"verify_exp": False},
        )
        claims = TokenClaims.model_validate(payload)
        if now.timestamp() >= claims.exp:
            raise JWTError("Signature has expired")
        return claims
    except (JWTError, ValidationError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


def get_principal_from_expired_token(token: str) -> Optional[TokenClaims]:
    """
    Identify the owner of an access token that may already be expired.

    Only signature, algorithm and shape are checked; lifetime, issuer and
    audience are not. Returns ``None`` when the token cannot be trusted.
    """
    if not isinstance(token, str) or not token:
        return None
    try:
        if not _has_expected_algorithm(token):
            return None
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[ALGORITHM],
            options={"verify_exp": False, "verify_aud": False, "verify_iss": False},
        )
        return TokenClaims.model_validate(payload)
    except (JWTError, ValidationError):
        return None


def get_current_claims(
    token: str = Depends(oauth2_scheme),
    clock: Clock = Depends(get_clock),
) -> TokenClaims:
    return decode_access_token(token, clock.now())


def get_current_user(
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(get_current_claims),
) -> User:
    user = db.get(User, claims.sub)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user

"""Refresh-token collection operations, always scoped to one user."""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from gameauth.core.clock import ensure_utc
from gameauth.core.config import settings
from gameauth.models.refresh_token import RefreshToken
from gameauth.models.user import User


def add(db: Session, user: User, token: RefreshToken) -> RefreshToken:
    user.refresh_tokens.append(token)
    db.add(token)
    return token


def find_by_value(db: Session, user: User, value: str) -> Optional[RefreshToken]:
    return db.scalars(
        select(RefreshToken).where(
            RefreshToken.user_id == user.id,
            RefreshToken.token == value,
        )
    ).first()


def _is_stale(token: RefreshToken, cutoff: datetime) -> bool:
    if ensure_utc(token.created_at) >= cutoff:
        return False
    if token.is_revoked:
        return True
    # never revoked, but its expiry is also past the retention window
    return ensure_utc(token.expires_at) < cutoff


def prune_stale(db: Session, user: User, now: datetime) -> int:
    """Drop long-inactive tokens; recently revoked ones stay for reuse detection."""
    cutoff = now - timedelta(days=settings.REFRESH_TOKEN_RETENTION_DAYS)
    stale = [t for t in user.refresh_tokens if _is_stale(t, cutoff)]
    for token in stale:
        # delete-orphan cascade removes the row at flush
        user.refresh_tokens.remove(token)
    return len(stale)


def revoke_all(db: Session, user: User, now: datetime) -> int:
    revoked = 0
    for token in user.refresh_tokens:
        if token.is_active(now):
            token.revoked_at = now
            revoked += 1
    return revoked


def rotate(
    db: Session, stored: RefreshToken, successor: RefreshToken, now: datetime
) -> bool:
    """
    Mark ``stored`` as replaced by ``successor`` and add the successor.

    The write only succeeds while ``stored`` is still unrevoked in the
    database, so two concurrent rotations of the same token cannot both win.
    Returns ``False`` when another writer revoked it first.
    """
    result = db.execute(
        update(RefreshToken)
        .where(RefreshToken.id == stored.id, RefreshToken.revoked_at.is_(None))
        .values(revoked_at=now, replaced_by_token=successor.token),
        execution_options={"synchronize_session": False},
    )
    db.refresh(stored)
    if result.rowcount != 1:
        return False
    add(db, stored.user, successor)
    return True

"""
Session lifecycle: register, login, refresh, logout and password change.

Refresh tokens rotate on every use. Presenting a token that was already
rotated or revoked is treated as theft: every active session of the user is
revoked before the error is returned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from gameauth.core.audit import AuditEvent, record_audit_event
from gameauth.core.clock import Clock, get_clock
from gameauth.core.errors import (
    ExpiredToken,
    InvalidCredentials,
    InvalidToken,
    LockedOut,
    SecurityAlert,
    UserNotFound,
    ValidationFailed,
)
from gameauth.core.security import (
    create_access_token,
    generate_refresh_token,
    get_principal_from_expired_token,
)
from gameauth.db.session import get_db
from gameauth.models.user import User
from gameauth.services import refresh_tokens
from gameauth.services.identity import IdentityBackend, SqlIdentityBackend

logger = logging.getLogger(__name__)


@dataclass
class AuthResult:
    access_token: str
    refresh_token: str
    expiry: datetime
    username: str
    email: str


class AuthService:
    def __init__(self, db: Session, identity: IdentityBackend, clock: Clock) -> None:
        self.db = db
        self.identity = identity
        self.clock = clock

    def get_user(self, user_id: str) -> Optional[User]:
        return self.db.scalars(
            select(User)
            .options(selectinload(User.refresh_tokens))
            .where(User.id == user_id)
        ).first()

    def _issue_tokens(self, user: User, now: datetime) -> AuthResult:
        refresh_token = generate_refresh_token(now)
        refresh_tokens.add(self.db, user, refresh_token)
        return AuthResult(
            access_token=create_access_token(user, now),
            refresh_token=refresh_token.token,
            expiry=refresh_token.expires_at,
            username=user.username,
            email=user.email,
        )

    def register(self, username: str, email: str, password: str) -> AuthResult:
        result = self.identity.create_account(username, email, password)
        if not result.ok:
            self.db.rollback()
            raise ValidationFailed(", ".join(result.errors), code="Auth.RegisterFailed")

        user = result.user
        issued = self._issue_tokens(user, self.clock.now())
        try:
            self.db.commit()
        except IntegrityError as exc:
            # lost a race with a concurrent registration of the same name
            self.db.rollback()
            raise ValidationFailed(
                "Username or email is already taken.", code="Auth.RegisterFailed"
            ) from exc

        record_audit_event(
            AuditEvent(action="auth.register", user_id=user.id, username=user.username)
        )
        return issued

    def login(self, username: str, password: str) -> AuthResult:
        check = self.identity.verify_credentials(username, password)
        if check.locked_out:
            record_audit_event(
                AuditEvent(
                    action="auth.locked_out",
                    user_id=check.user.id if check.user else None,
                    username=username,
                    level=logging.WARNING,
                )
            )
            raise LockedOut()
        if not check.ok:
            # same answer for unknown user and wrong password
            record_audit_event(
                AuditEvent(action="auth.login_failed", username=username, level=logging.WARNING)
            )
            raise InvalidCredentials()

        user = check.user
        now = self.clock.now()
        pruned = refresh_tokens.prune_stale(self.db, user, now)
        issued = self._issue_tokens(user, now)
        user.last_login_at = now
        self.db.commit()

        if pruned:
            logger.debug("Pruned %d stale refresh tokens for user %s", pruned, user.id)
        record_audit_event(
            AuditEvent(action="auth.login", user_id=user.id, username=user.username)
        )
        return issued

    def _revoke_after_reuse(self, user: User, now: datetime) -> None:
        # reload so sessions created by concurrent requests are included
        self.db.expire_all()
        revoked = refresh_tokens.revoke_all(self.db, user, now)
        # persist before reporting: the teardown must not depend on the response
        self.db.commit()
        record_audit_event(
            AuditEvent(
                action="auth.token_reuse",
                user_id=user.id,
                username=user.username,
                detail=f"revoked_sessions={revoked}",
                level=logging.CRITICAL,
            )
        )

    def refresh(self, access_token: str, refresh_token_value: str) -> AuthResult:
        claims = get_principal_from_expired_token(access_token)
        if claims is None:
            raise InvalidToken("Invalid access token")

        user = self.get_user(claims.sub)
        if user is None:
            raise UserNotFound()

        stored = refresh_tokens.find_by_value(self.db, user, refresh_token_value)
        if stored is None:
            raise InvalidToken("Invalid refresh token")

        now = self.clock.now()
        if stored.is_revoked:
            self._revoke_after_reuse(user, now)
            raise SecurityAlert()

        if not stored.is_active(now):
            raise ExpiredToken()

        successor = generate_refresh_token(now)
        if not refresh_tokens.rotate(self.db, stored, successor, now):
            # a concurrent request rotated this token between our read and write
            self._revoke_after_reuse(user, now)
            raise SecurityAlert()

        access = create_access_token(user, now)
        self.db.commit()

        record_audit_event(
            AuditEvent(action="auth.refresh", user_id=user.id, username=user.username)
        )
        return AuthResult(
            access_token=access,
            refresh_token=successor.token,
            expiry=successor.expires_at,
            username=user.username,
            email=user.email,
        )

    def logout(self, user_id: str) -> None:
        user = self.get_user(user_id)
        if user is None:
            return

        revoked = refresh_tokens.revoke_all(self.db, user, self.clock.now())
        self.db.commit()
        record_audit_event(
            AuditEvent(
                action="auth.logout",
                user_id=user.id,
                username=user.username,
                detail=f"revoked_sessions={revoked}",
            )
        )

    def change_password(
        self,
        user_id: str,
        current_password: str,
        new_password: str,
        confirm_new_password: str,
    ) -> None:
        user = self.get_user(user_id)
        if user is None:
            raise UserNotFound()

        if new_password != confirm_new_password:
            raise ValidationFailed("Passwords do not match.", code="Auth.ChangePasswordFailed")

        result = self.identity.change_password(user, current_password, new_password)
        if not result.ok:
            self.db.rollback()
            logger.warning("Failed to change password for user %s", user.id)
            raise ValidationFailed(
                ", ".join(result.errors), code="Auth.ChangePasswordFailed"
            )

        refresh_tokens.revoke_all(self.db, user, self.clock.now())
        self.db.commit()
        record_audit_event(
            AuditEvent(action="auth.password_changed", user_id=user.id, username=user.username)
        )


def get_auth_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> AuthService:
    return AuthService(db, SqlIdentityBackend(db, clock), clock)

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional, Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gameauth.core.clock import Clock, ensure_utc
from gameauth.core.config import settings
from gameauth.core.security import hash_password, verify_password
from gameauth.models.user import User
from gameauth.schemas.auth import password_policy_errors

logger = logging.getLogger(__name__)


@dataclass
class CredentialCheck:
    ok: bool
    locked_out: bool = False
    user: Optional[User] = None


@dataclass
class IdentityResult:
    ok: bool
    user: Optional[User] = None
    errors: List[str] = field(default_factory=list)


class IdentityBackend(Protocol):
    """What the session lifecycle needs from an account store."""

    def verify_credentials(self, username: str, password: str) -> CredentialCheck: ...

    def create_account(self, username: str, email: str, password: str) -> IdentityResult: ...

    def change_password(
        self, user: User, current_password: str, new_password: str
    ) -> IdentityResult: ...


class SqlIdentityBackend:
    """Accounts in the application database, bcrypt hashes, lockout counter."""

    def __init__(self, db: Session, clock: Clock) -> None:
        self.db = db
        self.clock = clock

    def find_by_username(self, username: str) -> Optional[User]:
        return self.db.scalars(
            select(User).where(func.lower(User.username) == username.strip().lower())
        ).first()

    def _email_taken(self, email: str) -> bool:
        return (
            self.db.scalars(
                select(User.id).where(func.lower(User.email) == email.strip().lower())
            ).first()
            is not None
        )

    def _is_locked_out(self, user: User) -> bool:
        lockout_end = ensure_utc(user.lockout_end)
        return lockout_end is not None and lockout_end > self.clock.now()

    def verify_credentials(self, username: str, password: str) -> CredentialCheck:
        user = self.find_by_username(username)
        if user is None:
            return CredentialCheck(ok=False)

        if self._is_locked_out(user):
            return CredentialCheck(ok=False, locked_out=True, user=user)

        if verify_password(password, user.hashed_password):
            if user.failed_login_count or user.lockout_end is not None:
                user.failed_login_count = 0
                user.lockout_end = None
            return CredentialCheck(ok=True, user=user)

        user.failed_login_count = (user.failed_login_count or 0) + 1
        locked_out = user.failed_login_count >= settings.LOCKOUT_MAX_FAILED_ATTEMPTS
        if locked_out:
            user.lockout_end = self.clock.now() + timedelta(minutes=settings.LOCKOUT_MINUTES)
            user.failed_login_count = 0
            logger.warning("Account %s locked out after repeated failures", user.id)
        # the failure counter must survive the failed login
        self.db.commit()
        return CredentialCheck(ok=False, locked_out=locked_out, user=user)

    def create_account(self, username: str, email: str, password: str) -> IdentityResult:
        errors: List[str] = []
        if self.find_by_username(username) is not None:
            errors.append(f"Username '{username}' is already taken.")
        if self._email_taken(email):
            errors.append(f"Email '{email}' is already taken.")
        errors.extend(password_policy_errors(password))
        if errors:
            return IdentityResult(ok=False, errors=errors)

        user = User(
            username=username.strip(),
            email=email.strip().lower(),
            hashed_password=hash_password(password),
            created_at=self.clock.now(),
            failed_login_count=0,
        )
        self.db.add(user)
        try:
            self.db.flush()
        except IntegrityError:
            # a concurrent registration committed the same name or email
            self.db.rollback()
            logger.info("Registration of %s lost a uniqueness race", username)
            return IdentityResult(ok=False, errors=["Username or email is already taken."])
        return IdentityResult(ok=True, user=user)

    def change_password(
        self, user: User, current_password: str, new_password: str
    ) -> IdentityResult:
        if not verify_password(current_password, user.hashed_password):
            return IdentityResult(ok=False, user=user, errors=["Incorrect password."])
        errors = password_policy_errors(new_password)
        if errors:
            return IdentityResult(ok=False, user=user, errors=errors)
        user.hashed_password = hash_password(new_password)
        return IdentityResult(ok=True, user=user)

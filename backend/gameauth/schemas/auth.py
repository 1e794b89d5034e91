import re
from typing import List

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from gameauth.core.config import settings

_UPPERCASE = re.compile(r"[A-Z]")
_DIGIT = re.compile(r"[0-9]")
_SPECIAL = re.compile(r"[^a-zA-Z0-9]")


def password_policy_errors(password: str) -> List[str]:
    errors = []
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        errors.append(
            f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters."
        )
    if not _UPPERCASE.search(password):
        errors.append("Password must contain uppercase letter")
    if not _DIGIT.search(password):
        errors.append("Password must contain number")
    if not _SPECIAL.search(password):
        errors.append("Password must contain special character")
    return errors


def _check_password_policy(value: str) -> str:
    errors = password_policy_errors(value)
    if errors:
        raise ValueError("; ".join(errors))
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(CamelModel):
    username: str = Field(min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(max_length=128)

    @field_validator("username")
    @classmethod
    def _strip_username(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 3:
            raise ValueError("Username must be at least 3 characters.")
        return value

    @field_validator("password")
    @classmethod
    def _validate_password(cls, value: str) -> str:
        return _check_password_policy(value)


class LoginRequest(CamelModel):
    username: str = Field(min_length=1, description="Username is required.")
    password: str = Field(min_length=1, description="Password is required.")


class RefreshRequest(CamelModel):
    access_token: str = Field(min_length=1)
    refresh_token: str = Field(min_length=1)


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(max_length=128)
    confirm_new_password: str

    @field_validator("new_password")
    @classmethod
    def _validate_new_password(cls, value: str) -> str:
        return _check_password_policy(value)

    @model_validator(mode="after")
    def _check_passwords(self):
        if self.new_password == self.current_password:
            raise ValueError("New password cannot be the same as the old password.")
        if self.confirm_new_password != self.new_password:
            raise ValueError("Passwords do not match.")
        return self


class MessageResponse(BaseModel):
    message: str

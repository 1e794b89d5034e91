from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Base class for failures reported by the auth service.

    Each subclass fixes a stable ``code`` and an HTTP ``status_code``. The
    ``description`` is safe to show to clients.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "Auth.Error"
    default_description: str = "Authentication error"

    def __init__(
        self,
        description: Optional[str] = None,
        *,
        code: Optional[str] = None,
    ) -> None:
        self.description = description or self.default_description
        if code is not None:
            self.code = code
        super().__init__(self.description)


class InvalidCredentials(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "Auth.InvalidCredentials"
    default_description = "Invalid credentials"


class LockedOut(AuthError):
    status_code = status.HTTP_423_LOCKED
    code = "Auth.LockedOut"
    default_description = "Account is temporarily locked. Try again later."


class InvalidToken(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "Auth.InvalidToken"
    default_description = "Invalid token"


class ExpiredToken(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "Auth.ExpiredToken"
    default_description = "Refresh token expired"


class SecurityAlert(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "Auth.SecurityAlert"
    default_description = "Security alert. Log in again."


class UserNotFound(AuthError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "Auth.UserNotFound"
    default_description = "User not found"


class ValidationFailed(AuthError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "Auth.ValidationFailed"
    default_description = "One or more validation errors occurred."


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError):
        logger.warning(
            "auth_error path=%s method=%s code=%s",
            request.url.path,
            request.method,
            exc.code,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": exc.code, "detail": exc.description},
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "code": ValidationFailed.code,
                "detail": ValidationFailed.default_description,
                "errors": jsonable_encoder(exc.errors()),
            },
        )

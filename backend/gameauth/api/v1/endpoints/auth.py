from fastapi import APIRouter, Depends

from gameauth.core.security import get_current_claims, get_current_user
from gameauth.models.user import User
from gameauth.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
)
from gameauth.schemas.token import TokenClaims, TokenResponse
from gameauth.schemas.user import UserOut
from gameauth.services.auth import AuthResult, AuthService, get_auth_service

router = APIRouter()


def _to_response(result: AuthResult) -> TokenResponse:
    return TokenResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        expiry=result.expiry,
        username=result.username,
        email=result.email,
    )


@router.post("/register", response_model=TokenResponse)
def register(
    payload: RegisterRequest, service: AuthService = Depends(get_auth_service)
) -> TokenResponse:
    result = service.register(payload.username, payload.email, payload.password)
    return _to_response(result)


@router.post("/login", response_model=TokenResponse)
def login(
    payload: LoginRequest, service: AuthService = Depends(get_auth_service)
) -> TokenResponse:
    result = service.login(payload.username, payload.password)
    return _to_response(result)


@router.post("/refresh", response_model=TokenResponse)
def refresh(
    payload: RefreshRequest, service: AuthService = Depends(get_auth_service)
) -> TokenResponse:
    result = service.refresh(payload.access_token, payload.refresh_token)
    return _to_response(result)


@router.post("/logout", response_model=MessageResponse)
def logout(
    claims: TokenClaims = Depends(get_current_claims),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    service.logout(claims.sub)
    return MessageResponse(message="Logged out successfully")


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    payload: ChangePasswordRequest,
    claims: TokenClaims = Depends(get_current_claims),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    service.change_password(
        claims.sub,
        payload.current_password,
        payload.new_password,
        payload.confirm_new_password,
    )
    return MessageResponse(message="Password changed successfully")


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)) -> UserOut:
    return UserOut.model_validate(user)

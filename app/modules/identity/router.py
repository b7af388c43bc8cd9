"""Identity API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from app.modules.identity.rate_limit import (
    limit_login,
    limit_password_reset,
    limit_refresh,
    limit_register,
)
from app.modules.identity.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    ResetPasswordRequest,
    TokenPair,
    UserCreate,
    UserRead,
)
from app.modules.identity.service import IdentityService, get_current_user, get_identity_service

router = APIRouter(prefix="/identity", tags=["identity"])


@router.post(
    "/auth/register",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(limit_register)],
)
async def register(
    payload: UserCreate,
    response: Response,
    service: IdentityService = Depends(get_identity_service),
) -> UserRead:
    """Register a new account, or re-apply as a previously rejected trainer."""
    user, created = await service.register(payload)
    if not created:
        response.status_code = status.HTTP_200_OK
    return UserRead.model_validate(user)


@router.post("/auth/login", response_model=TokenPair, dependencies=[Depends(limit_login)])
async def login(
    payload: LoginRequest,
    service: IdentityService = Depends(get_identity_service),
) -> TokenPair:
    """Sign in by email/password and return JWT token pair."""
    return await service.login(payload)


@router.post("/auth/refresh", response_model=TokenPair, dependencies=[Depends(limit_refresh)])
async def refresh_tokens(
    payload: RefreshRequest,
    service: IdentityService = Depends(get_identity_service),
) -> TokenPair:
    """Rotate refresh token and issue new token pair."""
    return await service.refresh_tokens(payload.refresh_token)


@router.post(
    "/auth/forgot-password",
    response_model=MessageResponse,
    dependencies=[Depends(limit_password_reset)],
)
async def forgot_password(
    payload: ForgotPasswordRequest,
    service: IdentityService = Depends(get_identity_service),
) -> MessageResponse:
    """Request a password reset link by email."""
    message = await service.forgot_password(payload.email)
    return MessageResponse(message=message)


@router.post(
    "/auth/reset-password/{token}",
    response_model=MessageResponse,
    dependencies=[Depends(limit_password_reset)],
)
async def reset_password(
    token: str,
    payload: ResetPasswordRequest,
    service: IdentityService = Depends(get_identity_service),
) -> MessageResponse:
    """Set a new password with a reset token."""
    await service.reset_password(token, payload.password)
    return MessageResponse(message="Password has been reset. You can sign in with the new password.")


@router.get("/users/me", response_model=UserRead)
async def get_me(current_user=Depends(get_current_user)) -> UserRead:
    """Return profile of authenticated user."""
    return UserRead.model_validate(current_user)

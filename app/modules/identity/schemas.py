"""Identity schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from app.core.enums import RoleEnum
from app.modules.trainers.schemas import TrainerApplicationData


class RoleRead(BaseModel):
    """Role response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: RoleEnum


class UserCreate(BaseModel):
    """User registration request.

    Trainers submit their application data in ``trainer_application``;
    a rejected trainer re-applies through the same request.
    """

    name: str = Field(min_length=2, max_length=128)
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    timezone: str = Field(default="UTC", max_length=64)
    role: RoleEnum = RoleEnum.STUDENT
    trainer_application: TrainerApplicationData | None = None

    @model_validator(mode="after")
    def validate_trainer_application(self) -> "UserCreate":
        if self.trainer_application is not None and self.role != RoleEnum.TRAINER:
            raise ValueError("trainer_application is accepted only for trainer role")
        return self


class LoginRequest(BaseModel):
    """Credentials for login."""

    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    """Refresh token payload."""

    refresh_token: str


class ForgotPasswordRequest(BaseModel):
    """Password reset request."""

    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """New password submitted with a reset token."""

    password: str = Field(min_length=8, max_length=128)


class MessageResponse(BaseModel):
    """Plain message response."""

    message: str


class TokenPair(BaseModel):
    """Access + refresh JWT response."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class UserRead(BaseModel):
    """User output schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: EmailStr
    timezone: str
    is_active: bool
    role: RoleRead
    created_at: datetime
    updated_at: datetime

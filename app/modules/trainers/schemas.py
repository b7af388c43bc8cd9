"""Trainers schemas."""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, HttpUrl

from app.core.enums import VerificationActionEnum, VerificationStatusEnum


class CertificationIn(BaseModel):
    """Certification listed in a trainer application."""

    name: str = Field(min_length=1, max_length=255)
    issuer: str = Field(default="", max_length=255)
    certificate_link: HttpUrl | None = None
    issued_date: date | None = None


class TrainerApplicationData(BaseModel):
    """Trainer-specific data submitted on (re-)registration."""

    bio: str = Field(default="", max_length=5000)
    education: str = Field(default="", max_length=2000)
    experience_details: str = Field(default="", max_length=5000)
    phone: str = Field(default="", max_length=32)
    hourly_rate: int = Field(default=2500, ge=0, le=1_000_000)
    languages: list[str] = Field(default_factory=list, max_length=20)
    certifications: list[CertificationIn] = Field(default_factory=list, max_length=20)

    def to_profile_fields(self) -> dict:
        return self.model_dump(mode="json")


class TrainerProfileUpdate(BaseModel):
    """Owner-editable trainer profile fields."""

    display_name: str | None = Field(default=None, min_length=2, max_length=128)
    bio: str | None = Field(default=None, max_length=5000)
    phone: str | None = Field(default=None, max_length=32)
    hourly_rate: int | None = Field(default=None, ge=0, le=1_000_000)
    languages: list[str] | None = Field(default=None, max_length=20)
    is_available: bool | None = None


class VerificationOverrideRequest(BaseModel):
    """Admin verification decision made outside the decision-link flow."""

    model_config = ConfigDict(str_strip_whitespace=True)

    action: VerificationActionEnum
    reason: str = Field(min_length=3, max_length=1000)


class TrainerPublicRead(BaseModel):
    """Public trainer card."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    display_name: str
    bio: str
    education: str
    hourly_rate: int
    languages: list[str]
    is_available: bool
    rating_average: float
    total_bookings: int


class TrainerProfileRead(TrainerPublicRead):
    """Full trainer profile for owner and admin."""

    id: UUID
    phone: str
    experience_details: str
    certifications: list[dict]
    verification_status: VerificationStatusEnum
    verification_notes: str
    applied_at: datetime
    rejection_date: datetime | None
    created_at: datetime
    updated_at: datetime

"""Reviews schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ReviewCreate(BaseModel):
    """Submit review request."""

    trainer_id: UUID
    session_id: UUID
    booking_id: UUID | None = None
    rating: int = Field(ge=1, le=5)
    comment: str = Field(default="", max_length=2000)


class ReviewUpdate(BaseModel):
    """Edit own review."""

    rating: int | None = Field(default=None, ge=1, le=5)
    comment: str | None = Field(default=None, max_length=2000)


class ReviewRead(BaseModel):
    """Review response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    trainer_id: UUID
    session_id: UUID
    booking_id: UUID | None
    rating: int
    comment: str
    created_at: datetime
    updated_at: datetime

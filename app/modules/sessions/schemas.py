"""Sessions schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import SessionStatusEnum


class SessionCreate(BaseModel):
    """Create session from paid bookings.

    ``trainer_id`` is required for admins; trainers always schedule for themselves.
    """

    trainer_id: UUID | None = None
    booking_ids: list[UUID] = Field(min_length=1, max_length=50)
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(default="", max_length=5000)
    scheduled_date: datetime
    duration_minutes: int = Field(default=60, ge=15, le=480)


class SessionUpdate(BaseModel):
    """Editable session details while still scheduled."""

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    scheduled_date: datetime | None = None
    duration_minutes: int | None = Field(default=None, ge=15, le=480)


class SessionTransitionRequest(BaseModel):
    """Requested next lifecycle status."""

    status: SessionStatusEnum


class SessionRead(BaseModel):
    """Session response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    trainer_id: UUID
    title: str
    description: str
    scheduled_date: datetime
    duration_minutes: int
    status: SessionStatusEnum
    meeting_room: str
    meeting_link: str
    booking_ids: list[UUID]
    student_ids: list[UUID]
    started_at: datetime | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime

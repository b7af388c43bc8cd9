"""Booking schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import PaymentMethodEnum, PaymentStatusEnum


class BookingCreate(BaseModel):
    """Create booking request.

    ``payment_id`` is the payment intent id (gateway) or demo payment id;
    passing it at creation lets a webhook that arrives later find the booking.
    """

    trainer_id: UUID
    payment_method: PaymentMethodEnum = PaymentMethodEnum.GATEWAY
    payment_id: str | None = Field(default=None, min_length=1, max_length=255)


class BookingPaymentUpdate(BaseModel):
    """Client-side payment confirmation result."""

    payment_status: PaymentStatusEnum
    payment_id: str | None = Field(default=None, min_length=1, max_length=255)


class BookingRead(BaseModel):
    """Booking response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    trainer_id: UUID
    student_name: str
    amount: int
    currency: str
    payment_method: PaymentMethodEnum
    payment_id: str | None
    payment_status: PaymentStatusEnum
    paid_at: datetime | None
    session_id: UUID | None
    created_at: datetime
    updated_at: datetime

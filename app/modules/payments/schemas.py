"""Payments schemas."""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PaymentIntentCreate(BaseModel):
    """Start a gateway payment for one session with a trainer."""

    trainer_id: UUID


class PaymentIntentRead(BaseModel):
    """Payment intent for client-side confirmation."""

    model_config = ConfigDict(populate_by_name=True)

    client_secret: str = Field(serialization_alias="clientSecret")
    payment_intent_id: str = Field(serialization_alias="paymentIntentId")
    amount: int
    currency: str


class DemoPaymentCreate(BaseModel):
    """Start a no-charge demo payment."""

    trainer_id: UUID


class DemoPaymentRead(BaseModel):
    """Demo payment result."""

    payment_id: str
    amount: int
    status: str


class WebhookAck(BaseModel):
    """Webhook acknowledgement."""

    received: bool = True

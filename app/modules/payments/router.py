"""Payments API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Request

from app.modules.identity.service import get_current_user
from app.modules.payments.schemas import (
    DemoPaymentCreate,
    DemoPaymentRead,
    PaymentIntentCreate,
    PaymentIntentRead,
    WebhookAck,
)
from app.modules.payments.service import PaymentsService, get_payments_service

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/create-payment-intent", response_model=PaymentIntentRead)
async def create_payment_intent(
    payload: PaymentIntentCreate,
    service: PaymentsService = Depends(get_payments_service),
    current_user=Depends(get_current_user),
) -> PaymentIntentRead:
    """Create payment intent for client-side confirmation."""
    intent = await service.create_payment_intent(payload, current_user)
    return PaymentIntentRead(
        client_secret=intent.client_secret,
        payment_intent_id=intent.intent_id,
        amount=intent.amount,
        currency=intent.currency,
    )


@router.post("/demo", response_model=DemoPaymentRead)
async def create_demo_payment(
    payload: DemoPaymentCreate,
    service: PaymentsService = Depends(get_payments_service),
    current_user=Depends(get_current_user),
) -> DemoPaymentRead:
    """Issue a no-charge demo payment (disabled in production)."""
    payment = await service.create_demo_payment(payload, current_user)
    return DemoPaymentRead(payment_id=payment.payment_id, amount=payment.amount, status=payment.status)


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="stripe-signature"),
    service: PaymentsService = Depends(get_payments_service),
) -> WebhookAck:
    """Receive provider events; recognized and ignored kinds are both acknowledged."""
    raw_body = await request.body()
    await service.handle_webhook(raw_body, stripe_signature)
    return WebhookAck()

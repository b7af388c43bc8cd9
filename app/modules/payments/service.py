"""Payments business logic layer."""

from __future__ import annotations

import logging

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import RoleEnum
from app.core.metrics import record_webhook_event
from app.modules.booking.service import BookingService, build_booking_service
from app.modules.identity.models import User
from app.modules.payments.gateway import DemoPayment, PaymentIntentResult, StripePaymentGateway
from app.modules.payments.schemas import DemoPaymentCreate, PaymentIntentCreate
from app.shared.exceptions import SignatureException, UnauthorizedException

logger = logging.getLogger(__name__)
settings = get_settings()


class PaymentsService:
    """Connects the payment gateway to the booking ledger."""

    def __init__(self, gateway: StripePaymentGateway, booking_service: BookingService) -> None:
        self.gateway = gateway
        self.booking_service = booking_service

    async def create_payment_intent(self, payload: PaymentIntentCreate, actor: User) -> PaymentIntentResult:
        """Create an intent priced at the trainer's session rate."""
        if actor.role.name != RoleEnum.STUDENT:
            raise UnauthorizedException("Only students can pay for sessions")

        profile = await self.booking_service.ensure_trainer_bookable(payload.trainer_id)
        return await self.gateway.create_intent(
            amount=profile.hourly_rate,
            currency=settings.payment_currency,
            metadata={"student_id": str(actor.id), "trainer_id": str(payload.trainer_id)},
        )

    async def create_demo_payment(self, payload: DemoPaymentCreate, actor: User) -> DemoPayment:
        if actor.role.name != RoleEnum.STUDENT:
            raise UnauthorizedException("Only students can pay for sessions")

        profile = await self.booking_service.ensure_trainer_bookable(payload.trainer_id)
        return self.gateway.create_demo_payment(profile.hourly_rate)

    async def handle_webhook(self, raw_body: bytes, signature_header: str | None) -> int:
        """Verify a provider event and reconcile bookings with it."""
        try:
            event = self.gateway.parse_webhook(raw_body, signature_header)
        except SignatureException as exc:
            logger.warning("Rejected payment webhook: %s", exc.message)
            record_webhook_event("unknown", "rejected")
            raise

        logger.info("Payment webhook received: %s (%s)", event.event_type, event.event_id)
        return await self.booking_service.reconcile_from_webhook(event)


async def get_payments_service(session: AsyncSession = Depends(get_db_session)) -> PaymentsService:
    """Dependency provider for payments service."""
    booking_service = build_booking_service(session)
    return PaymentsService(gateway=booking_service.gateway, booking_service=booking_service)

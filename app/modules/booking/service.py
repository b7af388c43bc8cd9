"""Booking ledger.

Creates bookings and reconciles their payment status from two writers
that may race: the client confirmation call and the provider webhook.
Both lock the booking row and treat an already-reached terminal state
as success, so they converge on the same result in either order.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import (
    GatewayEventKindEnum,
    PaymentMethodEnum,
    PaymentStatusEnum,
    RoleEnum,
    VerificationStatusEnum,
)
from app.core.metrics import record_payment_transition, record_webhook_event
from app.modules.audit.repository import AuditRepository
from app.modules.booking.models import Booking
from app.modules.booking.repository import BookingRepository
from app.modules.booking.schemas import BookingCreate, BookingPaymentUpdate
from app.modules.identity.models import User
from app.modules.payments.gateway import (
    GatewayEvent,
    IntentSnapshot,
    StripePaymentGateway,
    get_payment_gateway,
    is_demo_payment_id,
)
from app.modules.trainers.models import TrainerProfile
from app.modules.trainers.repository import TrainersRepository
from app.shared.exceptions import (
    BusinessRuleException,
    ConflictException,
    NotFoundException,
    TrainerUnavailableException,
    UnauthorizedException,
    ValidationException,
)
from app.shared.utils import utc_now

logger = logging.getLogger(__name__)
settings = get_settings()

_TERMINAL_TARGETS = (PaymentStatusEnum.COMPLETED, PaymentStatusEnum.FAILED)

# Intent states from which the provider will never collect the payment.
_ABANDONED_INTENT_STATUSES = frozenset({"canceled"})


class BookingService:
    """Booking domain service with payment reconciliation rules."""

    def __init__(
        self,
        booking_repository: BookingRepository,
        trainers_repository: TrainersRepository,
        audit_repository: AuditRepository,
        gateway: StripePaymentGateway,
        *,
        demo_enabled: bool | None = None,
    ) -> None:
        self.booking_repository = booking_repository
        self.trainers_repository = trainers_repository
        self.audit_repository = audit_repository
        self.gateway = gateway
        self.demo_enabled = settings.payments_demo_enabled if demo_enabled is None else demo_enabled

    async def ensure_trainer_bookable(self, trainer_id: UUID) -> TrainerProfile:
        """Return trainer profile if the trainer is verified and taking bookings."""
        profile = await self.trainers_repository.get_profile_by_user_id(trainer_id)
        if profile is None or profile.verification_status != VerificationStatusEnum.VERIFIED:
            raise TrainerUnavailableException("Trainer is not available for booking")
        if not profile.is_available:
            raise TrainerUnavailableException("Trainer is not accepting bookings right now")
        return profile

    def _validate_actor_access(self, booking: Booking, actor: User) -> None:
        if actor.role.name == RoleEnum.ADMIN:
            return
        if actor.role.name == RoleEnum.STUDENT and booking.student_id == actor.id:
            return
        if actor.role.name == RoleEnum.TRAINER and booking.trainer_id == actor.id:
            return
        raise UnauthorizedException("You cannot access this booking")

    def _validate_payment_id_for_method(self, method: PaymentMethodEnum, payment_id: str) -> None:
        if method == PaymentMethodEnum.DEMO and not is_demo_payment_id(payment_id):
            raise ValidationException("Demo bookings accept only demo payment ids")
        if method == PaymentMethodEnum.GATEWAY and is_demo_payment_id(payment_id):
            raise ValidationException("Demo payment ids cannot pay gateway bookings")

    async def _ensure_payment_id_unbound(self, payment_id: str, booking_id: UUID | None = None) -> None:
        other = await self.booking_repository.get_booking_by_payment_id(payment_id)
        if other is not None and other.id != booking_id:
            raise ConflictException("This payment is already bound to another booking")

    async def create_booking(self, payload: BookingCreate, actor: User) -> Booking:
        """Create booking in pending payment status."""
        if actor.role.name != RoleEnum.STUDENT:
            raise UnauthorizedException("Only students can create bookings")

        if payload.payment_method == PaymentMethodEnum.DEMO and not self.demo_enabled:
            raise UnauthorizedException("Demo payments are disabled")

        profile = await self.ensure_trainer_bookable(payload.trainer_id)

        if payload.payment_id is not None:
            self._validate_payment_id_for_method(payload.payment_method, payload.payment_id)
            await self._ensure_payment_id_unbound(payload.payment_id)

        booking = await self.booking_repository.create_booking(
            student_id=actor.id,
            trainer_id=payload.trainer_id,
            student_name=actor.name,
            amount=profile.hourly_rate,
            currency=settings.payment_currency,
            payment_method=payload.payment_method,
            payment_id=payload.payment_id,
        )
        logger.info("Booking %s created for trainer %s", booking.id, booking.trainer_id)
        return booking

    async def mark_payment_status(self, booking_id: UUID, payload: BookingPaymentUpdate, actor: User) -> Booking:
        """Apply the client-side confirmation result to a booking.

        Repeating a request that matches the stored terminal state is a
        no-op success; a request that contradicts it is a conflict.
        """
        target = payload.payment_status
        if target not in _TERMINAL_TARGETS:
            raise ValidationException("Payment status can only be set to completed or failed")

        booking = await self.booking_repository.lock_booking_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found")
        if actor.role.name != RoleEnum.ADMIN and booking.student_id != actor.id:
            raise UnauthorizedException("Only the booking owner can update its payment")

        payment_id = payload.payment_id or booking.payment_id
        if booking.payment_id is not None and payment_id != booking.payment_id:
            raise ConflictException("Booking is bound to a different payment")

        if booking.payment_status != PaymentStatusEnum.PENDING:
            if booking.payment_status == target:
                record_payment_transition(source="client", result="noop")
                return booking
            raise ConflictException(f"Booking payment is already {booking.payment_status.value}")

        if target == PaymentStatusEnum.COMPLETED:
            if payment_id is None:
                raise ValidationException("payment_id is required to complete a booking")
            self._validate_payment_id_for_method(booking.payment_method, payment_id)
            if booking.payment_method == PaymentMethodEnum.DEMO and not self.demo_enabled:
                raise UnauthorizedException("Demo payments are disabled")
            if booking.payment_method == PaymentMethodEnum.GATEWAY:
                await self._ensure_intent_paid(booking, payment_id)
        elif booking.payment_method == PaymentMethodEnum.GATEWAY and payment_id is not None:
            self._validate_payment_id_for_method(booking.payment_method, payment_id)
            target = await self._resolve_reported_failure(booking, payment_id)

        if payment_id is not None and booking.payment_id is None:
            self._validate_payment_id_for_method(booking.payment_method, payment_id)
            await self._ensure_payment_id_unbound(payment_id, booking.id)
            booking.payment_id = payment_id

        await self._transition(booking, target)
        record_payment_transition(source="client", result="applied")
        return booking

    async def _ensure_intent_paid(self, booking: Booking, intent_id: str) -> None:
        intent = await self.gateway.retrieve_intent(intent_id)
        if not intent.succeeded:
            raise BusinessRuleException(f"Payment is not completed yet (status: {intent.status})")
        self._ensure_intent_matches(booking, intent)

    async def _resolve_reported_failure(self, booking: Booking, intent_id: str) -> PaymentStatusEnum:
        """Check a client-reported failure against the provider.

        A retryable intent keeps the booking pending and a succeeded one
        completes it, so a later success webhook never meets a failed booking.
        """
        intent = await self.gateway.retrieve_intent(intent_id)
        if intent.succeeded:
            self._ensure_intent_matches(booking, intent)
            logger.info("Booking %s reported failed but intent %s succeeded", booking.id, intent_id)
            return PaymentStatusEnum.COMPLETED
        if intent.status not in _ABANDONED_INTENT_STATUSES:
            raise BusinessRuleException(f"Payment can still be completed (status: {intent.status})")
        return PaymentStatusEnum.FAILED

    @staticmethod
    def _ensure_intent_matches(booking: Booking, intent: IntentSnapshot) -> None:
        if intent.amount != booking.amount or intent.currency.lower() != booking.currency.lower():
            raise ConflictException("Payment amount does not match the booking")

    async def reconcile_from_webhook(self, event: GatewayEvent) -> int:
        """Align bookings with a verified provider event; return how many changed.

        A missing booking is not an error: the webhook may arrive before
        the client has created or confirmed its booking.
        """
        if event.kind == GatewayEventKindEnum.PAYMENT_SUCCEEDED:
            return await self._complete_bookings_for_intent(event)

        if event.kind == GatewayEventKindEnum.PAYMENT_FAILED:
            # Provider allows another attempt on the same intent; the ledger stays pending.
            logger.info("Payment attempt failed for intent %s", event.intent_id)
            record_webhook_event(event.kind.value, "informational")
            return 0

        if event.kind == GatewayEventKindEnum.PAYMENT_METHOD_ATTACHED:
            logger.info("Payment method attached (event %s)", event.event_id)
            record_webhook_event(event.kind.value, "informational")
            return 0

        logger.info("Ignoring webhook event type %s", event.event_type)
        record_webhook_event(event.kind.value, "ignored")
        return 0

    async def _complete_bookings_for_intent(self, event: GatewayEvent) -> int:
        bookings = await self.booking_repository.lock_bookings_by_payment_id(event.intent_id)
        if not bookings:
            logger.warning("No booking found for payment intent %s", event.intent_id)
            record_webhook_event(event.kind.value, "unmatched")
            return 0

        applied = 0
        for booking in bookings:
            if booking.payment_status == PaymentStatusEnum.PENDING:
                await self._transition(booking, PaymentStatusEnum.COMPLETED)
                record_payment_transition(source="webhook", result="applied")
                applied += 1
            elif booking.payment_status == PaymentStatusEnum.COMPLETED:
                record_payment_transition(source="webhook", result="noop")
            else:
                logger.warning(
                    "Booking %s is %s but intent %s succeeded",
                    booking.id,
                    booking.payment_status.value,
                    event.intent_id,
                )
                record_payment_transition(source="webhook", result="conflict")

        record_webhook_event(event.kind.value, "applied" if applied else "duplicate")
        return applied

    async def _transition(self, booking: Booking, target: PaymentStatusEnum) -> None:
        booking.payment_status = target
        if target == PaymentStatusEnum.COMPLETED:
            booking.paid_at = utc_now()
            profile = await self.trainers_repository.lock_profile_by_user_id(booking.trainer_id)
            if profile is not None:
                await self.trainers_repository.increment_total_bookings(profile)
        await self.booking_repository.save(booking)

        await self.audit_repository.create_outbox_event(
            aggregate_type="booking",
            aggregate_id=str(booking.id),
            event_type=f"booking.payment.{target.value}",
            payload={
                "booking_id": str(booking.id),
                "student_id": str(booking.student_id),
                "trainer_id": str(booking.trainer_id),
                "student_name": booking.student_name,
                "amount": booking.amount,
                "currency": booking.currency,
            },
        )

    async def get_booking(self, booking_id: UUID, actor: User) -> Booking:
        booking = await self.booking_repository.get_booking_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found")
        self._validate_actor_access(booking, actor)
        return booking

    async def list_bookings(
        self,
        actor: User,
        limit: int,
        offset: int,
    ) -> tuple[list[Booking], int]:
        """List bookings for actor according to role."""
        return await self.booking_repository.list_bookings(actor.id, actor.role.name, limit, offset)

    async def list_paid_unscheduled(self, trainer_id: UUID, actor: User) -> list[Booking]:
        """Paid bookings of a trainer that are not yet in a session."""
        if actor.role.name != RoleEnum.ADMIN and actor.id != trainer_id:
            raise UnauthorizedException("Only the trainer or admin can view these bookings")
        return await self.booking_repository.list_paid_unscheduled(trainer_id)


def build_booking_service(session: AsyncSession) -> BookingService:
    return BookingService(
        booking_repository=BookingRepository(session),
        trainers_repository=TrainersRepository(session),
        audit_repository=AuditRepository(session),
        gateway=get_payment_gateway(),
    )


async def get_booking_service(session: AsyncSession = Depends(get_db_session)) -> BookingService:
    """Dependency provider for booking service."""
    return build_booking_service(session)

"""Payment provider adapter.

Wraps Stripe: creates payment intents, verifies and normalizes webhook
events, and issues no-charge demo payments. Knows nothing about bookings.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any
from uuid import uuid4

import stripe

from app.core.config import get_settings
from app.core.enums import GatewayEventKindEnum
from app.shared.exceptions import (
    ConfigurationException,
    ProviderException,
    SignatureException,
    UnauthorizedException,
    ValidationException,
)

logger = logging.getLogger(__name__)

DEMO_PAYMENT_PREFIX = "demo_"

_EVENT_KINDS = {
    "payment_intent.succeeded": GatewayEventKindEnum.PAYMENT_SUCCEEDED,
    "payment_intent.payment_failed": GatewayEventKindEnum.PAYMENT_FAILED,
    "payment_method.attached": GatewayEventKindEnum.PAYMENT_METHOD_ATTACHED,
}


@dataclass(frozen=True, slots=True)
class PaymentIntentResult:
    intent_id: str
    client_secret: str
    amount: int
    currency: str


@dataclass(frozen=True, slots=True)
class IntentSnapshot:
    intent_id: str
    status: str
    amount: int
    currency: str

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"


@dataclass(frozen=True, slots=True)
class DemoPayment:
    payment_id: str
    amount: int
    status: str = "succeeded"


@dataclass(frozen=True, slots=True)
class GatewayEvent:
    """Provider webhook event reduced to what reconciliation needs."""

    kind: GatewayEventKindEnum
    event_type: str
    event_id: str | None = None
    intent_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


def is_demo_payment_id(payment_id: str | None) -> bool:
    return bool(payment_id) and payment_id.startswith(DEMO_PAYMENT_PREFIX)


def _validate_amount(amount: object) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationException("Amount must be a positive integer in minor currency units")
    return amount


class StripePaymentGateway:
    """Stripe-backed payment gateway."""

    def __init__(
        self,
        secret_key: str | None,
        webhook_secret: str | None,
        *,
        webhook_tolerance_seconds: int = 300,
        demo_enabled: bool = False,
        demo_max_amount: int = 10_000,
    ) -> None:
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.webhook_tolerance_seconds = webhook_tolerance_seconds
        self.demo_enabled = demo_enabled
        self.demo_max_amount = demo_max_amount

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)

    async def create_intent(self, amount: int, currency: str, metadata: dict[str, str]) -> PaymentIntentResult:
        """Create a payment intent; the client confirms it directly with Stripe."""
        amount = _validate_amount(amount)
        if not self.configured:
            raise ConfigurationException("Payment gateway is not configured")

        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.create,
                amount=amount,
                currency=currency.lower(),
                metadata=metadata,
                automatic_payment_methods={"enabled": True},
                api_key=self.secret_key,
            )
        except stripe.StripeError as exc:
            message = getattr(exc, "user_message", None) or str(exc) or "Payment provider error"
            logger.warning("Payment intent creation failed: %s", message)
            raise ProviderException(message) from exc

        return PaymentIntentResult(
            intent_id=intent.id,
            client_secret=intent.client_secret,
            amount=amount,
            currency=currency.lower(),
        )

    async def retrieve_intent(self, intent_id: str) -> IntentSnapshot:
        """Fetch current intent state from the provider."""
        if not self.configured:
            raise ConfigurationException("Payment gateway is not configured")

        try:
            intent = await asyncio.to_thread(stripe.PaymentIntent.retrieve, intent_id, api_key=self.secret_key)
        except stripe.StripeError as exc:
            message = getattr(exc, "user_message", None) or str(exc) or "Payment provider error"
            logger.warning("Payment intent %s lookup failed: %s", intent_id, message)
            raise ProviderException(message) from exc

        return IntentSnapshot(
            intent_id=intent.id,
            status=intent.status,
            amount=intent.amount,
            currency=intent.currency,
        )

    def parse_webhook(self, raw_body: bytes, signature_header: str | None, secret: str | None = None) -> GatewayEvent:
        """Verify signature over the raw body and normalize the event."""
        secret = secret or self.webhook_secret
        if not secret:
            raise ConfigurationException("Payment webhook secret is not configured")
        if not signature_header:
            raise SignatureException("Missing webhook signature")

        try:
            payload = raw_body.decode("utf-8") if isinstance(raw_body, bytes) else raw_body
        except UnicodeDecodeError as exc:
            raise SignatureException("Malformed webhook payload") from exc
        try:
            stripe.WebhookSignature.verify_header(
                payload,
                signature_header,
                secret,
                self.webhook_tolerance_seconds,
            )
        except stripe.SignatureVerificationError as exc:
            raise SignatureException("Invalid webhook signature") from exc

        try:
            body = json.loads(payload)
        except ValueError as exc:
            raise SignatureException("Malformed webhook payload") from exc
        if not isinstance(body, dict):
            raise SignatureException("Malformed webhook payload")

        event_type = str(body.get("type") or "")
        data_object = (body.get("data") or {}).get("object") or {}
        kind = _EVENT_KINDS.get(event_type, GatewayEventKindEnum.IGNORED)

        intent_id = None
        if kind in (GatewayEventKindEnum.PAYMENT_SUCCEEDED, GatewayEventKindEnum.PAYMENT_FAILED):
            intent_id = data_object.get("id")
            if not intent_id:
                raise SignatureException("Webhook event has no payment intent id")

        return GatewayEvent(
            kind=kind,
            event_type=event_type,
            event_id=body.get("id"),
            intent_id=intent_id,
            data=data_object if isinstance(data_object, dict) else {},
        )

    def create_demo_payment(self, amount: int) -> DemoPayment:
        """Issue a no-charge payment for trial flows."""
        amount = _validate_amount(amount)
        if not self.demo_enabled:
            raise UnauthorizedException("Demo payments are disabled")
        if amount > self.demo_max_amount:
            raise ValidationException(
                f"Demo payments are limited to {self.demo_max_amount} minor units",
            )
        return DemoPayment(payment_id=f"{DEMO_PAYMENT_PREFIX}{uuid4().hex}", amount=amount)


@lru_cache
def get_payment_gateway() -> StripePaymentGateway:
    """Dependency provider for the payment gateway."""
    settings = get_settings()
    return StripePaymentGateway(
        secret_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
        webhook_tolerance_seconds=settings.stripe_webhook_tolerance_seconds,
        demo_enabled=settings.payments_demo_enabled,
        demo_max_amount=settings.payments_demo_max_amount,
    )

"""Core enums used across modules."""

from enum import StrEnum


class RoleEnum(StrEnum):
    """System roles."""

    STUDENT = "student"
    TRAINER = "trainer"
    ADMIN = "admin"


class VerificationStatusEnum(StrEnum):
    """Trainer onboarding status."""

    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class VerificationActionEnum(StrEnum):
    """Human decision on a trainer application."""

    APPROVE = "approve"
    REJECT = "reject"


class PaymentMethodEnum(StrEnum):
    """How a booking is paid.

    DEMO bypasses the payment provider and is only accepted while
    ``payments_demo_enabled`` is set.
    """

    GATEWAY = "gateway"
    DEMO = "demo"


class PaymentStatusEnum(StrEnum):
    """Booking payment status."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class SessionStatusEnum(StrEnum):
    """Lesson session lifecycle status."""

    SCHEDULED = "scheduled"
    ACTIVE = "active"
    COMPLETED = "completed"


class GatewayEventKindEnum(StrEnum):
    """Normalized payment provider webhook event kinds."""

    PAYMENT_SUCCEEDED = "payment_succeeded"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_METHOD_ATTACHED = "payment_method_attached"
    IGNORED = "ignored"


class NotificationStatusEnum(StrEnum):
    """Notification delivery status."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class OutboxStatusEnum(StrEnum):
    """Outbox event status for integration publishing."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"

"""Outbox consumer that turns domain events into delivered emails."""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from uuid import UUID

from app.core.config import get_settings
from app.core.enums import NotificationStatusEnum, VerificationActionEnum
from app.core.security import create_password_reset_token
from app.modules.audit.models import OutboxEvent
from app.modules.audit.repository import AuditRepository
from app.modules.identity.repository import IdentityRepository
from app.modules.notifications.email import EmailDeliveryError, EmailMessage, EmailSender
from app.modules.notifications.repository import NotificationsRepository
from app.modules.verification.tokens import build_decision_url, issue_decision_link
from app.shared.utils import utc_now

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EmailLink:
    label: str
    url: str


@dataclass(slots=True)
class NotificationMessage:
    recipient_email: str
    title: str
    body: str
    user_id: UUID | None = None
    links: list[EmailLink] = field(default_factory=list)
    # Links carrying capability tokens are delivered but not persisted.
    secret_links: bool = False
    channel: str = "email"

    def render_text(self) -> str:
        lines = [self.body]
        lines.extend(f"{link.label}: {link.url}" for link in self.links)
        return "\n\n".join(lines)

    def render_html(self) -> str:
        parts = [f"<h2>{html.escape(self.title)}</h2>", f"<p>{html.escape(self.body)}</p>"]
        for link in self.links:
            parts.append(f'<p><a href="{html.escape(link.url, quote=True)}">{html.escape(link.label)}</a></p>')
        return "<html><body>" + "".join(parts) + "</body></html>"

    def stored_body(self) -> str:
        if self.secret_links:
            return self.body
        return self.render_text()


class NotificationsOutboxWorker:
    """Process outbox events, record notifications and send them."""

    def __init__(
        self,
        audit_repository: AuditRepository,
        notifications_repository: NotificationsRepository,
        identity_repository: IdentityRepository,
        email_sender: EmailSender,
        *,
        batch_size: int = 100,
        max_retries: int = 5,
        base_backoff_seconds: int = 30,
        max_backoff_seconds: int = 300,
        now_provider=utc_now,
    ) -> None:
        self.audit_repository = audit_repository
        self.notifications_repository = notifications_repository
        self.identity_repository = identity_repository
        self.email_sender = email_sender
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.base_backoff_seconds = base_backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self.now_provider = now_provider

    async def run_once(self) -> dict[str, int]:
        """Run one processing cycle."""
        stats = {"requeued": 0, "processed": 0, "failed": 0, "dispatched": 0, "undelivered": 0}
        stats["requeued"] = await self._requeue_retryable_failed_events()

        events = await self.audit_repository.list_pending_outbox(limit=self.batch_size)
        for event in events:
            try:
                messages = await self._build_messages(event)
                for message in messages:
                    delivered = await self._deliver(message)
                    stats["dispatched" if delivered else "undelivered"] += 1

                await self.audit_repository.mark_outbox_processed(event, self.now_provider())
                stats["processed"] += 1
            except Exception as exc:
                logger.exception("Outbox event %s (%s) failed", event.id, event.event_type)
                await self.audit_repository.mark_outbox_failed(event, str(exc))
                stats["failed"] += 1
        return stats

    async def _deliver(self, message: NotificationMessage) -> bool:
        notification = await self.notifications_repository.create_notification(
            user_id=message.user_id,
            recipient_email=message.recipient_email,
            channel=message.channel,
            title=message.title,
            body=message.stored_body(),
        )
        email = EmailMessage(
            to=message.recipient_email,
            subject=message.title,
            text=message.render_text(),
            html=message.render_html(),
        )
        try:
            await self.email_sender.send(email)
        except EmailDeliveryError as exc:
            logger.warning("Email to %s failed: %s", message.recipient_email, exc)
            await self.notifications_repository.set_status(
                notification,
                NotificationStatusEnum.FAILED,
                None,
                error_message=str(exc),
            )
            return False

        await self.notifications_repository.set_status(
            notification,
            NotificationStatusEnum.SENT,
            self.now_provider(),
        )
        return True

    async def _requeue_retryable_failed_events(self) -> int:
        now = self.now_provider()
        failed_events = await self.audit_repository.list_failed_outbox(
            limit=self.batch_size,
            max_retries=self.max_retries,
        )
        requeued = 0
        for event in failed_events:
            if self._is_backoff_elapsed(event, now):
                await self.audit_repository.mark_outbox_pending(event)
                requeued += 1
        return requeued

    def _is_backoff_elapsed(self, event: OutboxEvent, now: datetime) -> bool:
        retries = max(event.retries, 1)
        backoff_seconds = min(
            self.max_backoff_seconds,
            self.base_backoff_seconds * (2 ** (retries - 1)),
        )
        last_attempt_at = event.updated_at or event.occurred_at
        return now >= last_attempt_at + timedelta(seconds=backoff_seconds)

    async def _build_messages(self, event: OutboxEvent) -> list[NotificationMessage]:
        payload = event.payload or {}
        event_type = event.event_type
        settings = get_settings()

        if event_type == "trainer.application.submitted":
            trainer_id = self._required_uuid(payload, "trainer_id")
            applied_at = datetime.fromisoformat(self._required(payload, "applied_at"))
            name = payload.get("name", "A trainer")
            email = self._required(payload, "email")
            links = [
                EmailLink(
                    label=f"{action.value.capitalize()} application",
                    url=build_decision_url(issue_decision_link(trainer_id, action, applied_at), action),
                )
                for action in (VerificationActionEnum.APPROVE, VerificationActionEnum.REJECT)
            ]
            return [
                NotificationMessage(
                    recipient_email=settings.admin_verification_email,
                    title="New trainer application",
                    body=f"{name} ({email}) applied to become a trainer.",
                    links=links,
                    secret_links=True,
                ),
                NotificationMessage(
                    user_id=trainer_id,
                    recipient_email=email,
                    title="Application received",
                    body="Your trainer application is under review. We will email you once it is decided.",
                ),
            ]

        if event_type == "trainer.verification.approved":
            return [
                NotificationMessage(
                    user_id=self._required_uuid(payload, "trainer_id"),
                    recipient_email=self._required(payload, "email"),
                    title="Trainer application approved",
                    body="Your trainer profile is verified. You can now sign in and accept bookings.",
                    links=[EmailLink(label="Sign in", url=f"{settings.frontend_url}/login")],
                ),
            ]

        if event_type == "trainer.verification.rejected":
            return [
                NotificationMessage(
                    user_id=self._required_uuid(payload, "trainer_id"),
                    recipient_email=self._required(payload, "email"),
                    title="Trainer application declined",
                    body=(
                        "Your trainer application was not approved. "
                        f"You may apply again after {settings.trainer_reapply_cooldown_days} days."
                    ),
                ),
            ]

        if event_type == "identity.password_reset.requested":
            user_id = self._required_uuid(payload, "user_id")
            user = await self.identity_repository.get_user_by_id(user_id)
            if user is None:
                logger.info("Skipping password reset for removed user %s", user_id)
                return []
            token = create_password_reset_token(str(user.id), user.password_hash)
            return [
                NotificationMessage(
                    user_id=user.id,
                    recipient_email=user.email,
                    title="Reset your password",
                    body=(
                        "We received a request to reset your password. "
                        f"The link expires in {settings.password_reset_expire_minutes} minutes."
                    ),
                    links=[EmailLink(label="Reset password", url=f"{settings.frontend_url}/reset-password/{token}")],
                    secret_links=True,
                ),
            ]

        if event_type == "booking.payment.completed":
            student = await self._required_user(payload, "student_id")
            trainer = await self._required_user(payload, "trainer_id")
            amount = self._format_amount(payload)
            return [
                NotificationMessage(
                    user_id=student.id,
                    recipient_email=student.email,
                    title="Payment confirmed",
                    body=f"Your payment of {amount} to {trainer.name} is confirmed.",
                ),
                NotificationMessage(
                    user_id=trainer.id,
                    recipient_email=trainer.email,
                    title="New paid booking",
                    body=f"{payload.get('student_name', 'A student')} booked a session with you ({amount}).",
                ),
            ]

        if event_type == "booking.payment.failed":
            student = await self._required_user(payload, "student_id")
            return [
                NotificationMessage(
                    user_id=student.id,
                    recipient_email=student.email,
                    title="Payment failed",
                    body=f"Your payment of {self._format_amount(payload)} did not go through.",
                ),
            ]

        if event_type in _SESSION_MESSAGES:
            title, template = _SESSION_MESSAGES[event_type]
            session_title = payload.get("title", "Training session")
            body = template.format(title=session_title, date=payload.get("scheduled_date", ""))
            links: list[EmailLink] = []
            if payload.get("meeting_link") and event_type in ("session.scheduled", "session.active"):
                links.append(EmailLink(label="Join session", url=payload["meeting_link"]))
            recipient_ids = self._unique_recipients(
                *(UUID(str(value)) for value in payload.get("student_ids", [])),
                self._optional_uuid(payload, "trainer_id"),
            )
            messages = []
            for recipient_id in recipient_ids:
                user = await self.identity_repository.get_user_by_id(recipient_id)
                if user is None:
                    raise ValueError(f"User not found: {recipient_id}")
                messages.append(
                    NotificationMessage(
                        user_id=user.id,
                        recipient_email=user.email,
                        title=title,
                        body=body,
                        links=list(links),
                    ),
                )
            return messages

        if event_type == "review.submitted":
            trainer = await self._required_user(payload, "trainer_id")
            return [
                NotificationMessage(
                    user_id=trainer.id,
                    recipient_email=trainer.email,
                    title="New review",
                    body=(
                        f"{payload.get('student_name', 'A student')} rated your session "
                        f"{payload.get('rating')}/5. Your average is now {payload.get('rating_average')}."
                    ),
                ),
            ]

        return []

    async def _required_user(self, payload: dict, key: str):
        user_id = self._required_uuid(payload, key)
        user = await self.identity_repository.get_user_by_id(user_id)
        if user is None:
            raise ValueError(f"User not found: {user_id}")
        return user

    @staticmethod
    def _format_amount(payload: dict) -> str:
        amount = int(payload.get("amount", 0))
        currency = str(payload.get("currency", "")).upper()
        return f"{amount / 100:.2f} {currency}".strip()

    @staticmethod
    def _required(payload: dict, key: str) -> str:
        value = payload.get(key)
        if value is None:
            raise ValueError(f"Missing required key: {key}")
        return str(value)

    @staticmethod
    def _required_uuid(payload: dict, key: str) -> UUID:
        value = payload.get(key)
        if value is None:
            raise ValueError(f"Missing required key: {key}")
        return UUID(str(value))

    @staticmethod
    def _optional_uuid(payload: dict, key: str) -> UUID | None:
        value = payload.get(key)
        if value is None:
            return None
        return UUID(str(value))

    @staticmethod
    def _unique_recipients(*recipients: UUID | None) -> list[UUID]:
        unique: list[UUID] = []
        seen: set[UUID] = set()
        for recipient in recipients:
            if recipient is not None and recipient not in seen:
                unique.append(recipient)
                seen.add(recipient)
        return unique


_SESSION_MESSAGES: dict[str, tuple[str, str]] = {
    "session.scheduled": ("Session scheduled", "{title} is scheduled for {date}."),
    "session.active": ("Session started", "{title} has started."),
    "session.completed": ("Session completed", "{title} is complete. Students can now leave a review."),
    "session.canceled": ("Session canceled", "{title} was canceled. Paid bookings can be scheduled again."),
}

"""Session scheduler.

Groups paid bookings into a lesson instance and owns its lifecycle.
Creation runs inside the request transaction with every referenced
booking locked, so either all bookings are bound or none are.
"""

from __future__ import annotations

import logging
from uuid import UUID, uuid4

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import PaymentStatusEnum, RoleEnum, SessionStatusEnum, VerificationStatusEnum
from app.modules.audit.repository import AuditRepository
from app.modules.booking.repository import BookingRepository
from app.modules.identity.models import User
from app.modules.sessions.models import LessonSession
from app.modules.sessions.repository import SessionsRepository
from app.modules.sessions.schemas import SessionCreate, SessionUpdate
from app.modules.trainers.repository import TrainersRepository
from app.shared.exceptions import (
    BookingAlreadyScheduledException,
    BookingNotPaidException,
    BusinessRuleException,
    ConflictException,
    IllegalTransitionException,
    NotFoundException,
    TrainerUnavailableException,
    UnauthorizedException,
    ValidationException,
)
from app.shared.utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)
settings = get_settings()

_NEXT_STATUS = {
    SessionStatusEnum.SCHEDULED: SessionStatusEnum.ACTIVE,
    SessionStatusEnum.ACTIVE: SessionStatusEnum.COMPLETED,
}


def build_meeting_room() -> tuple[str, str]:
    """Return a unique meeting room name and its join link."""
    room = f"session-{uuid4().hex}"
    return room, f"{settings.meeting_base_url.rstrip('/')}/{room}"


class SessionsService:
    """Sessions domain service."""

    def __init__(
        self,
        repository: SessionsRepository,
        booking_repository: BookingRepository,
        trainers_repository: TrainersRepository,
        audit_repository: AuditRepository,
    ) -> None:
        self.repository = repository
        self.booking_repository = booking_repository
        self.trainers_repository = trainers_repository
        self.audit_repository = audit_repository

    def _resolve_trainer_id(self, payload: SessionCreate, actor: User) -> UUID:
        if actor.role.name == RoleEnum.TRAINER:
            if payload.trainer_id is not None and payload.trainer_id != actor.id:
                raise UnauthorizedException("Trainers can schedule only their own sessions")
            return actor.id
        if actor.role.name == RoleEnum.ADMIN:
            if payload.trainer_id is None:
                raise ValidationException("trainer_id is required")
            return payload.trainer_id
        raise UnauthorizedException("Only trainers and admins can create sessions")

    def _ensure_can_manage(self, lesson_session: LessonSession, actor: User) -> None:
        if actor.role.name == RoleEnum.ADMIN:
            return
        if actor.role.name == RoleEnum.TRAINER and lesson_session.trainer_id == actor.id:
            return
        raise UnauthorizedException("Only the session trainer or admin can manage this session")

    async def _get_locked_session(self, session_id: UUID) -> LessonSession:
        lesson_session = await self.repository.lock_session_by_id(session_id)
        if lesson_session is None:
            raise NotFoundException("Session not found")
        return lesson_session

    async def create_session(self, payload: SessionCreate, actor: User) -> LessonSession:
        """Bind paid bookings into a new scheduled session."""
        trainer_id = self._resolve_trainer_id(payload, actor)

        profile = await self.trainers_repository.get_profile_by_user_id(trainer_id)
        if profile is None or profile.verification_status != VerificationStatusEnum.VERIFIED:
            raise TrainerUnavailableException("Trainer is not verified")

        scheduled_date = ensure_utc(payload.scheduled_date)
        if scheduled_date <= utc_now():
            raise BusinessRuleException("Session must be scheduled in the future")

        requested_ids = list(dict.fromkeys(payload.booking_ids))
        bookings = await self.booking_repository.lock_bookings_by_ids(requested_ids)
        found_ids = {booking.id for booking in bookings}
        missing = [str(booking_id) for booking_id in requested_ids if booking_id not in found_ids]
        if missing:
            raise NotFoundException(f"Bookings not found: {', '.join(missing)}")

        for booking in bookings:
            if booking.trainer_id != trainer_id:
                raise BusinessRuleException(f"Booking {booking.id} belongs to another trainer")
        for booking in bookings:
            if booking.payment_status != PaymentStatusEnum.COMPLETED:
                raise BookingNotPaidException(f"Booking {booking.id} is not paid")
        for booking in bookings:
            if booking.session_id is not None:
                raise BookingAlreadyScheduledException(f"Booking {booking.id} is already scheduled")

        student_ids = list(dict.fromkeys(booking.student_id for booking in bookings))
        meeting_room, meeting_link = build_meeting_room()
        lesson_session = await self.repository.create_session(
            trainer_id=trainer_id,
            title=payload.title,
            description=payload.description,
            scheduled_date=scheduled_date,
            duration_minutes=payload.duration_minutes,
            meeting_room=meeting_room,
            meeting_link=meeting_link,
            bookings=bookings,
            student_ids=student_ids,
            created_by_id=actor.id,
        )

        await self.audit_repository.create_outbox_event(
            aggregate_type="session",
            aggregate_id=str(lesson_session.id),
            event_type="session.scheduled",
            payload={
                "session_id": str(lesson_session.id),
                "trainer_id": str(trainer_id),
                "student_ids": [str(student_id) for student_id in student_ids],
                "title": lesson_session.title,
                "scheduled_date": scheduled_date.isoformat(),
                "duration_minutes": lesson_session.duration_minutes,
                "meeting_link": meeting_link,
            },
        )
        if actor.role.name == RoleEnum.ADMIN:
            await self.audit_repository.create_audit_log(
                actor_id=actor.id,
                action="session.created",
                entity_type="session",
                entity_id=str(lesson_session.id),
                payload={
                    "trainer_id": str(trainer_id),
                    "booking_ids": [str(booking.id) for booking in bookings],
                },
            )
        logger.info("Session %s scheduled with %s booking(s)", lesson_session.id, len(bookings))
        return lesson_session

    async def transition(self, session_id: UUID, target: SessionStatusEnum, actor: User) -> LessonSession:
        """Move session to the next lifecycle status."""
        lesson_session = await self._get_locked_session(session_id)
        self._ensure_can_manage(lesson_session, actor)

        if _NEXT_STATUS.get(lesson_session.status) != target:
            raise IllegalTransitionException(
                f"Cannot move session from {lesson_session.status.value} to {target.value}",
            )

        now = utc_now()
        changes = {"status": target}
        if target == SessionStatusEnum.ACTIVE:
            changes["started_at"] = now
        else:
            changes["completed_at"] = now
        await self.repository.update_session(lesson_session, **changes)

        await self.audit_repository.create_outbox_event(
            aggregate_type="session",
            aggregate_id=str(lesson_session.id),
            event_type=f"session.{target.value}",
            payload={
                "session_id": str(lesson_session.id),
                "trainer_id": str(lesson_session.trainer_id),
                "student_ids": [str(student_id) for student_id in lesson_session.student_ids],
                "title": lesson_session.title,
                "meeting_link": lesson_session.meeting_link,
            },
        )
        return lesson_session

    async def update_session(self, session_id: UUID, payload: SessionUpdate, actor: User) -> LessonSession:
        """Edit details of a session that has not started."""
        lesson_session = await self._get_locked_session(session_id)
        self._ensure_can_manage(lesson_session, actor)
        if lesson_session.status != SessionStatusEnum.SCHEDULED:
            raise ConflictException("Only scheduled sessions can be edited")

        changes = payload.model_dump(exclude_none=True)
        if "scheduled_date" in changes:
            changes["scheduled_date"] = ensure_utc(changes["scheduled_date"])
            if changes["scheduled_date"] <= utc_now():
                raise BusinessRuleException("Session must be scheduled in the future")
        return await self.repository.update_session(lesson_session, **changes)

    async def delete_session(self, session_id: UUID, actor: User) -> None:
        """Cancel a scheduled session and release its bookings for rescheduling."""
        lesson_session = await self._get_locked_session(session_id)
        self._ensure_can_manage(lesson_session, actor)
        if lesson_session.status != SessionStatusEnum.SCHEDULED:
            raise ConflictException("Only scheduled sessions can be deleted")

        payload = {
            "session_id": str(session_id),
            "trainer_id": str(lesson_session.trainer_id),
            "student_ids": [str(student_id) for student_id in lesson_session.student_ids],
            "title": lesson_session.title,
            "booking_ids": [str(booking_id) for booking_id in lesson_session.booking_ids],
        }
        await self.booking_repository.lock_bookings_by_session_id(lesson_session.id)
        await self.repository.delete_session(lesson_session)

        await self.audit_repository.create_outbox_event(
            aggregate_type="session",
            aggregate_id=str(session_id),
            event_type="session.canceled",
            payload=payload,
        )

    async def get_session(self, session_id: UUID, actor: User) -> LessonSession:
        lesson_session = await self.repository.get_session_by_id(session_id)
        if lesson_session is None:
            raise NotFoundException("Session not found")
        if actor.role.name == RoleEnum.ADMIN or lesson_session.trainer_id == actor.id:
            return lesson_session
        if actor.id in lesson_session.student_ids:
            return lesson_session
        raise UnauthorizedException("You are not a participant of this session")

    async def list_sessions(self, actor: User, limit: int, offset: int) -> tuple[list[LessonSession], int]:
        """List sessions according to actor role."""
        return await self.repository.list_sessions_for_user(actor.id, actor.role.name, limit, offset)


async def get_sessions_service(session: AsyncSession = Depends(get_db_session)) -> SessionsService:
    """Dependency provider for sessions service."""
    return SessionsService(
        repository=SessionsRepository(session),
        booking_repository=BookingRepository(session),
        trainers_repository=TrainersRepository(session),
        audit_repository=AuditRepository(session),
    )

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest

import app.modules.sessions.service as sessions_service_module
from app.core.enums import PaymentStatusEnum, RoleEnum, SessionStatusEnum, VerificationStatusEnum
from app.modules.sessions.schemas import SessionCreate, SessionUpdate
from app.modules.sessions.service import SessionsService
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

NOW = datetime(2026, 5, 20, 8, 0, tzinfo=UTC)


@dataclass
class FakeBooking:
    id: UUID
    trainer_id: UUID
    student_id: UUID
    payment_status: PaymentStatusEnum = PaymentStatusEnum.COMPLETED
    session_id: UUID | None = None


@dataclass
class FakeSession:
    id: UUID
    trainer_id: UUID
    title: str
    description: str
    scheduled_date: datetime
    duration_minutes: int
    meeting_room: str
    meeting_link: str
    created_by_id: UUID | None
    bookings: list[FakeBooking] = field(default_factory=list)
    student_id_list: list[UUID] = field(default_factory=list)
    status: SessionStatusEnum = SessionStatusEnum.SCHEDULED
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def booking_ids(self) -> list[UUID]:
        return [booking.id for booking in self.bookings]

    @property
    def student_ids(self) -> list[UUID]:
        return list(self.student_id_list)


class FakeSessionsRepository:
    def __init__(self) -> None:
        self.sessions: dict[UUID, FakeSession] = {}

    async def create_session(self, *, bookings, student_ids, **fields) -> FakeSession:
        lesson_session = FakeSession(
            id=uuid4(),
            bookings=list(bookings),
            student_id_list=list(student_ids),
            **fields,
        )
        for booking in bookings:
            booking.session_id = lesson_session.id
        self.sessions[lesson_session.id] = lesson_session
        return lesson_session

    async def lock_session_by_id(self, session_id: UUID) -> FakeSession | None:
        return self.sessions.get(session_id)

    async def get_session_by_id(self, session_id: UUID) -> FakeSession | None:
        return self.sessions.get(session_id)

    async def update_session(self, lesson_session: FakeSession, **changes) -> FakeSession:
        for key, value in changes.items():
            if value is not None:
                setattr(lesson_session, key, value)
        return lesson_session

    async def delete_session(self, lesson_session: FakeSession) -> None:
        for booking in lesson_session.bookings:
            booking.session_id = None
        lesson_session.bookings.clear()
        del self.sessions[lesson_session.id]


class FakeBookingRepository:
    def __init__(self, bookings: list[FakeBooking]) -> None:
        self.bookings = {booking.id: booking for booking in bookings}

    async def lock_bookings_by_ids(self, booking_ids: list[UUID]) -> list[FakeBooking]:
        return [self.bookings[booking_id] for booking_id in booking_ids if booking_id in self.bookings]

    async def lock_bookings_by_session_id(self, session_id: UUID) -> list[FakeBooking]:
        return [booking for booking in self.bookings.values() if booking.session_id == session_id]


class FakeTrainersRepository:
    def __init__(self, profiles: dict[UUID, VerificationStatusEnum]) -> None:
        self.profiles = {
            user_id: SimpleNamespace(user_id=user_id, verification_status=status) for user_id, status in profiles.items()
        }

    async def get_profile_by_user_id(self, user_id: UUID):
        return self.profiles.get(user_id)


class FakeAuditRepository:
    def __init__(self) -> None:
        self.outbox: list[dict] = []
        self.audit_logs: list[dict] = []

    async def create_outbox_event(self, **kwargs) -> dict:
        self.outbox.append(kwargs)
        return kwargs

    async def create_audit_log(self, **kwargs) -> dict:
        self.audit_logs.append(kwargs)
        return kwargs


@dataclass
class Scheduler:
    service: SessionsService
    sessions: FakeSessionsRepository
    audit: FakeAuditRepository
    trainer: SimpleNamespace
    bookings: list[FakeBooking]


def make_actor(role: RoleEnum) -> SimpleNamespace:
    return SimpleNamespace(id=uuid4(), role=SimpleNamespace(name=role))


def make_scheduler(
    *,
    trainer_status: VerificationStatusEnum = VerificationStatusEnum.VERIFIED,
    booking_count: int = 2,
) -> Scheduler:
    trainer = make_actor(RoleEnum.TRAINER)
    bookings = [FakeBooking(id=uuid4(), trainer_id=trainer.id, student_id=uuid4()) for _ in range(booking_count)]
    sessions_repo = FakeSessionsRepository()
    audit_repo = FakeAuditRepository()
    service = SessionsService(
        repository=sessions_repo,  # type: ignore[arg-type]
        booking_repository=FakeBookingRepository(bookings),  # type: ignore[arg-type]
        trainers_repository=FakeTrainersRepository({trainer.id: trainer_status}),  # type: ignore[arg-type]
        audit_repository=audit_repo,  # type: ignore[arg-type]
    )
    return Scheduler(service, sessions_repo, audit_repo, trainer, bookings)


def session_payload(booking_ids: list[UUID], **overrides) -> SessionCreate:
    values = {
        "booking_ids": booking_ids,
        "title": "Strength basics",
        "scheduled_date": NOW + timedelta(days=1),
    }
    values.update(overrides)
    return SessionCreate(**values)


@pytest.fixture(autouse=True)
def frozen_now(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(sessions_service_module, "utc_now", lambda: NOW)


@pytest.mark.asyncio
async def test_create_session_binds_paid_bookings_and_students() -> None:
    scheduler = make_scheduler()
    booking_ids = [booking.id for booking in scheduler.bookings]

    lesson_session = await scheduler.service.create_session(session_payload(booking_ids), scheduler.trainer)

    assert lesson_session.status == SessionStatusEnum.SCHEDULED
    assert lesson_session.trainer_id == scheduler.trainer.id
    assert lesson_session.booking_ids == booking_ids
    assert lesson_session.student_ids == [booking.student_id for booking in scheduler.bookings]
    assert lesson_session.meeting_room.startswith("session-")
    assert lesson_session.meeting_link.endswith(lesson_session.meeting_room)
    assert all(booking.session_id == lesson_session.id for booking in scheduler.bookings)
    assert [event["event_type"] for event in scheduler.audit.outbox] == ["session.scheduled"]
    assert scheduler.audit.audit_logs == []


@pytest.mark.asyncio
async def test_meeting_rooms_are_unique_per_session() -> None:
    scheduler = make_scheduler()
    first = await scheduler.service.create_session(
        session_payload([scheduler.bookings[0].id]),
        scheduler.trainer,
    )
    second = await scheduler.service.create_session(
        session_payload([scheduler.bookings[1].id]),
        scheduler.trainer,
    )

    assert first.meeting_room != second.meeting_room


@pytest.mark.asyncio
async def test_unpaid_booking_blocks_whole_session() -> None:
    scheduler = make_scheduler()
    scheduler.bookings[1].payment_status = PaymentStatusEnum.PENDING

    with pytest.raises(BookingNotPaidException):
        await scheduler.service.create_session(
            session_payload([booking.id for booking in scheduler.bookings]),
            scheduler.trainer,
        )

    assert all(booking.session_id is None for booking in scheduler.bookings)
    assert scheduler.sessions.sessions == {}
    assert scheduler.audit.outbox == []


@pytest.mark.asyncio
async def test_already_scheduled_booking_is_rejected() -> None:
    scheduler = make_scheduler()
    first_booking, second_booking = scheduler.bookings
    existing = await scheduler.service.create_session(session_payload([first_booking.id]), scheduler.trainer)

    with pytest.raises(BookingAlreadyScheduledException):
        await scheduler.service.create_session(
            session_payload([second_booking.id, first_booking.id]),
            scheduler.trainer,
        )

    assert first_booking.session_id == existing.id
    assert second_booking.session_id is None
    assert len(scheduler.sessions.sessions) == 1


@pytest.mark.asyncio
async def test_missing_booking_is_not_found() -> None:
    scheduler = make_scheduler()

    with pytest.raises(NotFoundException):
        await scheduler.service.create_session(
            session_payload([scheduler.bookings[0].id, uuid4()]),
            scheduler.trainer,
        )

    assert scheduler.bookings[0].session_id is None


@pytest.mark.asyncio
async def test_booking_of_other_trainer_is_rejected() -> None:
    scheduler = make_scheduler()
    scheduler.bookings[0].trainer_id = uuid4()

    with pytest.raises(BusinessRuleException):
        await scheduler.service.create_session(
            session_payload([scheduler.bookings[0].id]),
            scheduler.trainer,
        )


@pytest.mark.asyncio
async def test_unverified_trainer_cannot_schedule() -> None:
    scheduler = make_scheduler(trainer_status=VerificationStatusEnum.PENDING)

    with pytest.raises(TrainerUnavailableException):
        await scheduler.service.create_session(
            session_payload([scheduler.bookings[0].id]),
            scheduler.trainer,
        )


@pytest.mark.asyncio
async def test_session_in_the_past_is_rejected() -> None:
    scheduler = make_scheduler()

    with pytest.raises(BusinessRuleException):
        await scheduler.service.create_session(
            session_payload([scheduler.bookings[0].id], scheduled_date=NOW - timedelta(minutes=1)),
            scheduler.trainer,
        )


@pytest.mark.asyncio
async def test_students_cannot_create_sessions() -> None:
    scheduler = make_scheduler()

    with pytest.raises(UnauthorizedException):
        await scheduler.service.create_session(
            session_payload([scheduler.bookings[0].id]),
            make_actor(RoleEnum.STUDENT),
        )


@pytest.mark.asyncio
async def test_admin_must_name_trainer_and_is_audited() -> None:
    scheduler = make_scheduler()
    admin = make_actor(RoleEnum.ADMIN)

    with pytest.raises(ValidationException):
        await scheduler.service.create_session(session_payload([scheduler.bookings[0].id]), admin)

    lesson_session = await scheduler.service.create_session(
        session_payload([scheduler.bookings[0].id], trainer_id=scheduler.trainer.id),
        admin,
    )

    assert lesson_session.created_by_id == admin.id
    assert scheduler.audit.audit_logs[0]["action"] == "session.created"


@pytest.mark.asyncio
async def test_lifecycle_moves_forward_only() -> None:
    scheduler = make_scheduler()
    lesson_session = await scheduler.service.create_session(
        session_payload([scheduler.bookings[0].id]),
        scheduler.trainer,
    )

    with pytest.raises(IllegalTransitionException):
        await scheduler.service.transition(lesson_session.id, SessionStatusEnum.COMPLETED, scheduler.trainer)

    await scheduler.service.transition(lesson_session.id, SessionStatusEnum.ACTIVE, scheduler.trainer)
    assert lesson_session.started_at == NOW

    with pytest.raises(IllegalTransitionException):
        await scheduler.service.transition(lesson_session.id, SessionStatusEnum.SCHEDULED, scheduler.trainer)

    await scheduler.service.transition(lesson_session.id, SessionStatusEnum.COMPLETED, scheduler.trainer)
    assert lesson_session.status == SessionStatusEnum.COMPLETED
    assert lesson_session.completed_at == NOW

    with pytest.raises(IllegalTransitionException):
        await scheduler.service.transition(lesson_session.id, SessionStatusEnum.COMPLETED, scheduler.trainer)

    assert [event["event_type"] for event in scheduler.audit.outbox] == [
        "session.scheduled",
        "session.active",
        "session.completed",
    ]


@pytest.mark.asyncio
async def test_other_trainer_cannot_transition() -> None:
    scheduler = make_scheduler()
    lesson_session = await scheduler.service.create_session(
        session_payload([scheduler.bookings[0].id]),
        scheduler.trainer,
    )

    with pytest.raises(UnauthorizedException):
        await scheduler.service.transition(
            lesson_session.id,
            SessionStatusEnum.ACTIVE,
            make_actor(RoleEnum.TRAINER),
        )


@pytest.mark.asyncio
async def test_delete_scheduled_session_releases_bookings() -> None:
    scheduler = make_scheduler()
    booking_ids = [booking.id for booking in scheduler.bookings]
    lesson_session = await scheduler.service.create_session(session_payload(booking_ids), scheduler.trainer)

    await scheduler.service.delete_session(lesson_session.id, scheduler.trainer)

    assert all(booking.session_id is None for booking in scheduler.bookings)
    assert scheduler.audit.outbox[-1]["event_type"] == "session.canceled"
    assert scheduler.audit.outbox[-1]["payload"]["booking_ids"] == [str(booking_id) for booking_id in booking_ids]

    rescheduled = await scheduler.service.create_session(session_payload(booking_ids), scheduler.trainer)
    assert rescheduled.booking_ids == booking_ids


@pytest.mark.asyncio
async def test_started_session_cannot_be_edited_or_deleted() -> None:
    scheduler = make_scheduler()
    lesson_session = await scheduler.service.create_session(
        session_payload([scheduler.bookings[0].id]),
        scheduler.trainer,
    )
    await scheduler.service.transition(lesson_session.id, SessionStatusEnum.ACTIVE, scheduler.trainer)

    with pytest.raises(ConflictException):
        await scheduler.service.update_session(lesson_session.id, SessionUpdate(title="New"), scheduler.trainer)
    with pytest.raises(ConflictException):
        await scheduler.service.delete_session(lesson_session.id, scheduler.trainer)


@pytest.mark.asyncio
async def test_get_session_limited_to_participants() -> None:
    scheduler = make_scheduler()
    lesson_session = await scheduler.service.create_session(
        session_payload([scheduler.bookings[0].id]),
        scheduler.trainer,
    )
    participant = SimpleNamespace(id=scheduler.bookings[0].student_id, role=SimpleNamespace(name=RoleEnum.STUDENT))

    assert await scheduler.service.get_session(lesson_session.id, participant) is lesson_session
    with pytest.raises(UnauthorizedException):
        await scheduler.service.get_session(lesson_session.id, make_actor(RoleEnum.STUDENT))

from __future__ import annotations

from dataclasses import dataclass, field
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest

from app.core.enums import RoleEnum, SessionStatusEnum
from app.modules.reviews.schemas import ReviewCreate, ReviewUpdate
from app.modules.reviews.service import ReviewsService, compute_rating_average
from app.modules.trainers.models import DEFAULT_RATING
from app.shared.exceptions import (
    DuplicateReviewException,
    NotAParticipantException,
    SessionNotCompletedException,
    UnauthorizedException,
    ValidationException,
)


@dataclass
class FakeReview:
    id: UUID
    student_id: UUID
    trainer_id: UUID
    session_id: UUID
    booking_id: UUID | None
    rating: int
    comment: str


@dataclass
class FakeProfile:
    user_id: UUID
    rating_average: float = DEFAULT_RATING


@dataclass
class FakeSession:
    id: UUID
    trainer_id: UUID
    status: SessionStatusEnum
    student_ids: list[UUID] = field(default_factory=list)


class FakeReviewsRepository:
    def __init__(self) -> None:
        self.reviews: dict[UUID, FakeReview] = {}

    async def create_review(self, **fields) -> FakeReview:
        review = FakeReview(id=uuid4(), **fields)
        self.reviews[review.id] = review
        return review

    async def get_review_by_id(self, review_id: UUID) -> FakeReview | None:
        return self.reviews.get(review_id)

    async def get_review_by_student_and_session(self, student_id: UUID, session_id: UUID) -> FakeReview | None:
        for review in self.reviews.values():
            if review.student_id == student_id and review.session_id == session_id:
                return review
        return None

    async def list_ratings_for_trainer(self, trainer_id: UUID) -> list[int]:
        return [review.rating for review in self.reviews.values() if review.trainer_id == trainer_id]

    async def update_review(self, review: FakeReview, **changes) -> FakeReview:
        for key, value in changes.items():
            setattr(review, key, value)
        return review

    async def delete_review(self, review: FakeReview) -> None:
        del self.reviews[review.id]


class FakeSessionsRepository:
    def __init__(self, sessions: list[FakeSession]) -> None:
        self.sessions = {lesson_session.id: lesson_session for lesson_session in sessions}

    async def get_session_by_id(self, session_id: UUID) -> FakeSession | None:
        return self.sessions.get(session_id)


class FakeBookingRepository:
    def __init__(self, bookings: list[SimpleNamespace] | None = None) -> None:
        self.bookings = {booking.id: booking for booking in bookings or []}

    async def get_booking_by_id(self, booking_id: UUID) -> SimpleNamespace | None:
        return self.bookings.get(booking_id)


class FakeTrainersRepository:
    def __init__(self, profile: FakeProfile) -> None:
        self.profile = profile
        self.lock_calls = 0

    async def lock_profile_by_user_id(self, user_id: UUID) -> FakeProfile | None:
        self.lock_calls += 1
        return self.profile if user_id == self.profile.user_id else None

    async def set_rating_average(self, profile: FakeProfile, rating_average: float) -> FakeProfile:
        profile.rating_average = rating_average
        return profile


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
class Aggregator:
    service: ReviewsService
    reviews: FakeReviewsRepository
    profile: FakeProfile
    audit: FakeAuditRepository
    lesson_session: FakeSession
    students: list[SimpleNamespace]


def make_actor(role: RoleEnum) -> SimpleNamespace:
    return SimpleNamespace(id=uuid4(), name="Sam Student", role=SimpleNamespace(name=role))


def make_aggregator(
    *,
    status: SessionStatusEnum = SessionStatusEnum.COMPLETED,
    student_count: int = 3,
    bookings: list[SimpleNamespace] | None = None,
) -> Aggregator:
    profile = FakeProfile(user_id=uuid4())
    students = [make_actor(RoleEnum.STUDENT) for _ in range(student_count)]
    lesson_session = FakeSession(
        id=uuid4(),
        trainer_id=profile.user_id,
        status=status,
        student_ids=[student.id for student in students],
    )
    reviews_repo = FakeReviewsRepository()
    audit_repo = FakeAuditRepository()
    service = ReviewsService(
        repository=reviews_repo,  # type: ignore[arg-type]
        sessions_repository=FakeSessionsRepository([lesson_session]),  # type: ignore[arg-type]
        booking_repository=FakeBookingRepository(bookings),  # type: ignore[arg-type]
        trainers_repository=FakeTrainersRepository(profile),  # type: ignore[arg-type]
        audit_repository=audit_repo,  # type: ignore[arg-type]
    )
    return Aggregator(service, reviews_repo, profile, audit_repo, lesson_session, students)


def review_payload(aggregator: Aggregator, rating: int, **overrides) -> ReviewCreate:
    values = {
        "trainer_id": aggregator.profile.user_id,
        "session_id": aggregator.lesson_session.id,
        "rating": rating,
        "comment": "Great session",
    }
    values.update(overrides)
    return ReviewCreate(**values)


@pytest.mark.parametrize(
    ("ratings", "expected"),
    [
        ([], 5.0),
        ([4], 4.0),
        ([5, 4], 4.5),
        ([5, 4, 4], 4.3),
        ([5, 5, 4, 4, 4, 4], 4.3),
        ([1, 2, 2, 2], 1.8),
        ([4, 5, 5, 5, 5, 5, 5, 5], 4.9),
    ],
)
def test_compute_rating_average(ratings: list[int], expected: float) -> None:
    assert compute_rating_average(ratings) == expected


def test_compute_rating_average_rounds_half_up() -> None:
    # 4.25 and 4.75 sit exactly on the rounding boundary.
    assert compute_rating_average([4, 4, 4, 5]) == 4.3
    assert compute_rating_average([5, 5, 5, 4]) == 4.8


@pytest.mark.asyncio
async def test_reviews_update_trainer_average() -> None:
    aggregator = make_aggregator()
    first, second, third = aggregator.students

    await aggregator.service.submit_review(review_payload(aggregator, 5), first)
    assert aggregator.profile.rating_average == 5.0
    await aggregator.service.submit_review(review_payload(aggregator, 4), second)
    assert aggregator.profile.rating_average == 4.5
    await aggregator.service.submit_review(review_payload(aggregator, 4), third)
    assert aggregator.profile.rating_average == 4.3

    assert [event["event_type"] for event in aggregator.audit.outbox] == ["review.submitted"] * 3
    assert aggregator.audit.outbox[-1]["payload"]["rating_average"] == 4.3


@pytest.mark.asyncio
async def test_edit_and_delete_recompute_average() -> None:
    aggregator = make_aggregator(student_count=1)
    student = aggregator.students[0]

    review = await aggregator.service.submit_review(review_payload(aggregator, 5), student)
    await aggregator.service.update_review(review.id, ReviewUpdate(rating=3), student)
    assert aggregator.profile.rating_average == 3.0

    await aggregator.service.delete_review(review.id, student)
    assert aggregator.profile.rating_average == DEFAULT_RATING
    assert aggregator.reviews.reviews == {}


@pytest.mark.asyncio
async def test_second_review_for_same_session_is_duplicate() -> None:
    aggregator = make_aggregator()
    student = aggregator.students[0]
    await aggregator.service.submit_review(review_payload(aggregator, 4), student)

    with pytest.raises(DuplicateReviewException):
        await aggregator.service.submit_review(review_payload(aggregator, 2), student)

    assert aggregator.profile.rating_average == 4.0
    assert len(aggregator.reviews.reviews) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [SessionStatusEnum.SCHEDULED, SessionStatusEnum.ACTIVE])
async def test_unfinished_session_cannot_be_reviewed(status: SessionStatusEnum) -> None:
    aggregator = make_aggregator(status=status)

    with pytest.raises(SessionNotCompletedException):
        await aggregator.service.submit_review(review_payload(aggregator, 5), aggregator.students[0])

    assert aggregator.reviews.reviews == {}


@pytest.mark.asyncio
async def test_non_participant_cannot_review() -> None:
    aggregator = make_aggregator()

    with pytest.raises(NotAParticipantException):
        await aggregator.service.submit_review(review_payload(aggregator, 5), make_actor(RoleEnum.STUDENT))


@pytest.mark.asyncio
async def test_trainer_mismatch_is_validation_error() -> None:
    aggregator = make_aggregator()

    with pytest.raises(ValidationException):
        await aggregator.service.submit_review(
            review_payload(aggregator, 5, trainer_id=uuid4()),
            aggregator.students[0],
        )


@pytest.mark.asyncio
async def test_out_of_range_rating_is_rejected_before_any_write() -> None:
    aggregator = make_aggregator()
    payload = ReviewCreate.model_construct(
        trainer_id=aggregator.profile.user_id,
        session_id=aggregator.lesson_session.id,
        booking_id=None,
        rating=6,
        comment="",
    )

    with pytest.raises(ValidationException):
        await aggregator.service.submit_review(payload, aggregator.students[0])

    assert aggregator.reviews.reviews == {}
    assert aggregator.profile.rating_average == DEFAULT_RATING


@pytest.mark.asyncio
async def test_booking_must_belong_to_reviewer_and_session() -> None:
    aggregator = make_aggregator()
    student = aggregator.students[0]
    foreign_booking = SimpleNamespace(id=uuid4(), session_id=uuid4(), student_id=student.id)
    aggregator.service.booking_repository.bookings[foreign_booking.id] = foreign_booking

    with pytest.raises(ValidationException):
        await aggregator.service.submit_review(
            review_payload(aggregator, 5, booking_id=foreign_booking.id),
            student,
        )


@pytest.mark.asyncio
async def test_only_students_submit_reviews() -> None:
    aggregator = make_aggregator()

    with pytest.raises(UnauthorizedException):
        await aggregator.service.submit_review(review_payload(aggregator, 5), make_actor(RoleEnum.TRAINER))


@pytest.mark.asyncio
async def test_only_author_edits_but_admin_may_delete_with_audit() -> None:
    aggregator = make_aggregator()
    author, other = aggregator.students[:2]
    review = await aggregator.service.submit_review(review_payload(aggregator, 1), author)
    admin = make_actor(RoleEnum.ADMIN)

    with pytest.raises(UnauthorizedException):
        await aggregator.service.update_review(review.id, ReviewUpdate(rating=5), other)
    with pytest.raises(UnauthorizedException):
        await aggregator.service.delete_review(review.id, other)

    await aggregator.service.delete_review(review.id, admin)

    assert aggregator.profile.rating_average == DEFAULT_RATING
    assert aggregator.audit.audit_logs[0]["action"] == "review.deleted"
    assert aggregator.audit.audit_logs[0]["payload"]["rating"] == 1

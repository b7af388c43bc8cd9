"""Review aggregator.

Accepts one review per student and completed session and keeps
``TrainerProfile.rating_average`` equal to the rounded mean of all the
trainer's reviews. Every write takes the trainer profile row lock first,
so concurrent reviews for one trainer recompute one after another.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.core.enums import RoleEnum, SessionStatusEnum
from app.modules.audit.repository import AuditRepository
from app.modules.booking.repository import BookingRepository
from app.modules.identity.models import User
from app.modules.reviews.models import Review
from app.modules.reviews.repository import ReviewsRepository
from app.modules.reviews.schemas import ReviewCreate, ReviewUpdate
from app.modules.sessions.repository import SessionsRepository
from app.modules.trainers.models import DEFAULT_RATING, TrainerProfile
from app.modules.trainers.repository import TrainersRepository
from app.shared.exceptions import (
    DuplicateReviewException,
    NotAParticipantException,
    NotFoundException,
    SessionNotCompletedException,
    UnauthorizedException,
    ValidationException,
)


def compute_rating_average(ratings: Iterable[int]) -> float:
    """Mean of all ratings rounded half-up to one decimal; 5.0 without reviews."""
    values = list(ratings)
    if not values:
        return DEFAULT_RATING
    mean = Decimal(sum(values)) / Decimal(len(values))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _validate_rating(rating: object) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationException("Rating must be an integer from 1 to 5")
    return rating


class ReviewsService:
    """Reviews domain service."""

    def __init__(
        self,
        repository: ReviewsRepository,
        sessions_repository: SessionsRepository,
        booking_repository: BookingRepository,
        trainers_repository: TrainersRepository,
        audit_repository: AuditRepository,
    ) -> None:
        self.repository = repository
        self.sessions_repository = sessions_repository
        self.booking_repository = booking_repository
        self.trainers_repository = trainers_repository
        self.audit_repository = audit_repository

    async def _lock_trainer(self, trainer_id: UUID) -> TrainerProfile:
        profile = await self.trainers_repository.lock_profile_by_user_id(trainer_id)
        if profile is None:
            raise NotFoundException("Trainer not found")
        return profile

    async def _recompute(self, profile: TrainerProfile) -> float:
        ratings = await self.repository.list_ratings_for_trainer(profile.user_id)
        average = compute_rating_average(ratings)
        await self.trainers_repository.set_rating_average(profile, average)
        return average

    async def submit_review(self, payload: ReviewCreate, actor: User) -> Review:
        """Create a review for a completed session the student attended."""
        if actor.role.name != RoleEnum.STUDENT:
            raise UnauthorizedException("Only students can submit reviews")
        rating = _validate_rating(payload.rating)

        lesson_session = await self.sessions_repository.get_session_by_id(payload.session_id)
        if lesson_session is None:
            raise NotFoundException("Session not found")
        if lesson_session.trainer_id != payload.trainer_id:
            raise ValidationException("Session does not belong to this trainer")
        if lesson_session.status != SessionStatusEnum.COMPLETED:
            raise SessionNotCompletedException("You can review a session only after it is completed")
        if actor.id not in lesson_session.student_ids:
            raise NotAParticipantException("You did not attend this session")

        if payload.booking_id is not None:
            booking = await self.booking_repository.get_booking_by_id(payload.booking_id)
            if booking is None or booking.session_id != lesson_session.id or booking.student_id != actor.id:
                raise ValidationException("Booking does not match this session")

        profile = await self._lock_trainer(lesson_session.trainer_id)

        existing = await self.repository.get_review_by_student_and_session(actor.id, lesson_session.id)
        if existing is not None:
            raise DuplicateReviewException("You have already reviewed this session")

        review = await self.repository.create_review(
            student_id=actor.id,
            trainer_id=lesson_session.trainer_id,
            session_id=lesson_session.id,
            booking_id=payload.booking_id,
            rating=rating,
            comment=payload.comment,
        )
        average = await self._recompute(profile)

        await self.audit_repository.create_outbox_event(
            aggregate_type="review",
            aggregate_id=str(review.id),
            event_type="review.submitted",
            payload={
                "review_id": str(review.id),
                "trainer_id": str(review.trainer_id),
                "session_id": str(review.session_id),
                "student_name": actor.name,
                "rating": rating,
                "rating_average": average,
            },
        )
        return review

    async def update_review(self, review_id: UUID, payload: ReviewUpdate, actor: User) -> Review:
        """Edit own review and recompute the trainer rating."""
        review = await self.repository.get_review_by_id(review_id)
        if review is None:
            raise NotFoundException("Review not found")
        if review.student_id != actor.id:
            raise UnauthorizedException("You can edit only your own reviews")

        changes = payload.model_dump(exclude_none=True)
        if "rating" in changes:
            changes["rating"] = _validate_rating(changes["rating"])

        profile = await self._lock_trainer(review.trainer_id)
        await self.repository.update_review(review, **changes)
        await self._recompute(profile)
        return review

    async def delete_review(self, review_id: UUID, actor: User) -> None:
        """Delete a review as its author or as admin."""
        review = await self.repository.get_review_by_id(review_id)
        if review is None:
            raise NotFoundException("Review not found")

        is_admin = actor.role.name == RoleEnum.ADMIN
        if review.student_id != actor.id and not is_admin:
            raise UnauthorizedException("You can delete only your own reviews")

        profile = await self._lock_trainer(review.trainer_id)
        snapshot = {
            "student_id": str(review.student_id),
            "trainer_id": str(review.trainer_id),
            "session_id": str(review.session_id),
            "rating": review.rating,
        }
        await self.repository.delete_review(review)
        await self._recompute(profile)

        if is_admin and review.student_id != actor.id:
            await self.audit_repository.create_audit_log(
                actor_id=actor.id,
                action="review.deleted",
                entity_type="review",
                entity_id=str(review_id),
                payload=snapshot,
            )

    async def list_trainer_reviews(self, trainer_id: UUID, limit: int, offset: int) -> tuple[list[Review], int]:
        return await self.repository.list_reviews_for_trainer(trainer_id, limit, offset)

    async def list_my_reviews(self, actor: User, limit: int, offset: int) -> tuple[list[Review], int]:
        return await self.repository.list_reviews_by_student(actor.id, limit, offset)


async def get_reviews_service(session: AsyncSession = Depends(get_db_session)) -> ReviewsService:
    """Dependency provider for reviews service."""
    return ReviewsService(
        repository=ReviewsRepository(session),
        sessions_repository=SessionsRepository(session),
        booking_repository=BookingRepository(session),
        trainers_repository=TrainersRepository(session),
        audit_repository=AuditRepository(session),
    )

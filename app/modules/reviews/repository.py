"""Reviews repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.reviews.models import Review


class ReviewsRepository:
    """DB operations for reviews domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_review(
        self,
        student_id: UUID,
        trainer_id: UUID,
        session_id: UUID,
        booking_id: UUID | None,
        rating: int,
        comment: str,
    ) -> Review:
        review = Review(
            student_id=student_id,
            trainer_id=trainer_id,
            session_id=session_id,
            booking_id=booking_id,
            rating=rating,
            comment=comment,
        )
        self.session.add(review)
        await self.session.flush()
        return review

    async def get_review_by_id(self, review_id: UUID) -> Review | None:
        stmt = select(Review).where(Review.id == review_id)
        return await self.session.scalar(stmt)

    async def get_review_by_student_and_session(self, student_id: UUID, session_id: UUID) -> Review | None:
        stmt = select(Review).where(Review.student_id == student_id, Review.session_id == session_id)
        return await self.session.scalar(stmt)

    async def list_ratings_for_trainer(self, trainer_id: UUID) -> list[int]:
        stmt = select(Review.rating).where(Review.trainer_id == trainer_id)
        return list((await self.session.scalars(stmt)).all())

    async def _paginate(self, base_stmt: Select[tuple[Review]], limit: int, offset: int) -> tuple[list[Review], int]:
        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(Review.created_at.desc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def list_reviews_for_trainer(self, trainer_id: UUID, limit: int, offset: int) -> tuple[list[Review], int]:
        return await self._paginate(select(Review).where(Review.trainer_id == trainer_id), limit, offset)

    async def list_reviews_by_student(self, student_id: UUID, limit: int, offset: int) -> tuple[list[Review], int]:
        return await self._paginate(select(Review).where(Review.student_id == student_id), limit, offset)

    async def update_review(self, review: Review, **changes) -> Review:
        for key, value in changes.items():
            if value is not None:
                setattr(review, key, value)
        await self.session.flush()
        return review

    async def delete_review(self, review: Review) -> None:
        await self.session.delete(review)
        await self.session.flush()

"""Trainers repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import VerificationStatusEnum
from app.modules.trainers.models import TrainerProfile


class TrainersRepository:
    """DB operations for trainers domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_profile(self, user_id: UUID, display_name: str, applied_at: datetime, **fields) -> TrainerProfile:
        profile = TrainerProfile(
            user_id=user_id,
            display_name=display_name,
            applied_at=applied_at,
            verification_status=VerificationStatusEnum.PENDING,
            rejection_date=None,
            **fields,
        )
        self.session.add(profile)
        await self.session.flush()
        return profile

    async def get_profile_by_user_id(self, user_id: UUID) -> TrainerProfile | None:
        stmt = select(TrainerProfile).where(TrainerProfile.user_id == user_id)
        return await self.session.scalar(stmt)

    async def lock_profile_by_user_id(self, user_id: UUID) -> TrainerProfile | None:
        """Load profile with a row lock held until the transaction ends."""
        stmt = select(TrainerProfile).where(TrainerProfile.user_id == user_id).with_for_update()
        return await self.session.scalar(stmt)

    async def list_verified_profiles(self, limit: int, offset: int) -> tuple[list[TrainerProfile], int]:
        base_stmt: Select[tuple[TrainerProfile]] = select(TrainerProfile).where(
            TrainerProfile.verification_status == VerificationStatusEnum.VERIFIED,
        )
        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = (
            base_stmt.order_by(TrainerProfile.rating_average.desc(), TrainerProfile.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def list_profiles_by_status(
        self,
        status: VerificationStatusEnum,
        limit: int,
        offset: int,
    ) -> tuple[list[TrainerProfile], int]:
        base_stmt: Select[tuple[TrainerProfile]] = select(TrainerProfile).where(
            TrainerProfile.verification_status == status,
        )
        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(TrainerProfile.applied_at.asc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def update_profile(self, profile: TrainerProfile, **changes) -> TrainerProfile:
        for key, value in changes.items():
            if value is not None:
                setattr(profile, key, value)
        await self.session.flush()
        return profile

    async def set_verification_status(
        self,
        profile: TrainerProfile,
        status: VerificationStatusEnum,
        rejection_date: datetime | None,
    ) -> TrainerProfile:
        profile.verification_status = status
        profile.rejection_date = rejection_date
        await self.session.flush()
        return profile

    async def set_rating_average(self, profile: TrainerProfile, rating_average: float) -> TrainerProfile:
        profile.rating_average = rating_average
        await self.session.flush()
        return profile

    async def increment_total_bookings(self, profile: TrainerProfile) -> TrainerProfile:
        profile.total_bookings += 1
        await self.session.flush()
        return profile

"""Booking repository layer."""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import PaymentMethodEnum, PaymentStatusEnum, RoleEnum
from app.modules.booking.models import Booking


class BookingRepository:
    """DB operations for booking domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_booking(
        self,
        student_id: UUID,
        trainer_id: UUID,
        student_name: str,
        amount: int,
        currency: str,
        payment_method: PaymentMethodEnum,
        payment_id: str | None,
    ) -> Booking:
        booking = Booking(
            student_id=student_id,
            trainer_id=trainer_id,
            student_name=student_name,
            amount=amount,
            currency=currency,
            payment_method=payment_method,
            payment_id=payment_id,
            payment_status=PaymentStatusEnum.PENDING,
        )
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_booking_by_id(self, booking_id: UUID) -> Booking | None:
        stmt = select(Booking).where(Booking.id == booking_id)
        return await self.session.scalar(stmt)

    async def lock_booking_by_id(self, booking_id: UUID) -> Booking | None:
        """Load booking with a row lock held until the transaction ends."""
        stmt = select(Booking).where(Booking.id == booking_id).with_for_update()
        return await self.session.scalar(stmt)

    async def lock_bookings_by_ids(self, booking_ids: Sequence[UUID]) -> list[Booking]:
        stmt = select(Booking).where(Booking.id.in_(booking_ids)).order_by(Booking.id).with_for_update()
        return (await self.session.scalars(stmt)).all()

    async def lock_bookings_by_payment_id(self, payment_id: str) -> list[Booking]:
        stmt = select(Booking).where(Booking.payment_id == payment_id).order_by(Booking.id).with_for_update()
        return (await self.session.scalars(stmt)).all()

    async def get_booking_by_payment_id(self, payment_id: str) -> Booking | None:
        stmt = select(Booking).where(Booking.payment_id == payment_id)
        return await self.session.scalar(stmt)

    async def list_bookings(
        self,
        user_id: UUID,
        role_name: RoleEnum,
        limit: int,
        offset: int,
    ) -> tuple[list[Booking], int]:
        base_stmt: Select[tuple[Booking]] = select(Booking)

        if role_name == RoleEnum.STUDENT:
            base_stmt = base_stmt.where(Booking.student_id == user_id)
        elif role_name == RoleEnum.TRAINER:
            base_stmt = base_stmt.where(Booking.trainer_id == user_id)

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(Booking.created_at.desc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def list_paid_unscheduled(self, trainer_id: UUID) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(
                Booking.trainer_id == trainer_id,
                Booking.payment_status == PaymentStatusEnum.COMPLETED,
                Booking.session_id.is_(None),
            )
            .order_by(Booking.created_at.asc())
        )
        return (await self.session.scalars(stmt)).all()

    async def lock_bookings_by_session_id(self, session_id: UUID) -> list[Booking]:
        stmt = select(Booking).where(Booking.session_id == session_id).order_by(Booking.id).with_for_update()
        return (await self.session.scalars(stmt)).all()

    async def save(self, booking: Booking) -> Booking:
        await self.session.flush()
        return booking

"""Booking ORM models."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin
from app.core.enums import PaymentMethodEnum, PaymentStatusEnum

if TYPE_CHECKING:
    from app.modules.identity.models import User
    from app.modules.sessions.models import LessonSession


class Booking(BaseModelMixin, Base):
    """Paid commitment of a student to a trainer, before it is scheduled.

    ``payment_status`` only moves ``pending -> completed`` or
    ``pending -> failed``. A booking belongs to at most one session.
    """

    __tablename__ = "bookings"

    student_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    trainer_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    student_name: Mapped[str] = mapped_column(String(128), nullable=False)

    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    payment_method: Mapped[PaymentMethodEnum] = mapped_column(
        SAEnum(PaymentMethodEnum, name="payment_method_enum", native_enum=False),
        nullable=False,
    )
    payment_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    payment_status: Mapped[PaymentStatusEnum] = mapped_column(
        SAEnum(PaymentStatusEnum, name="payment_status_enum", native_enum=False),
        default=PaymentStatusEnum.PENDING,
        nullable=False,
        index=True,
    )
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    session_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("sessions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    student: Mapped["User"] = relationship(back_populates="bookings_as_student", foreign_keys=[student_id])
    trainer: Mapped["User"] = relationship(back_populates="bookings_as_trainer", foreign_keys=[trainer_id])
    session: Mapped["LessonSession | None"] = relationship(back_populates="bookings")

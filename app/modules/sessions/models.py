"""Sessions ORM models."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin
from app.core.enums import SessionStatusEnum

if TYPE_CHECKING:
    from app.modules.booking.models import Booking


class SessionStudent(Base):
    """Student attending a session, fixed when the session is created."""

    __tablename__ = "session_students"

    session_id: Mapped[UUID] = mapped_column(ForeignKey("sessions.id", ondelete="CASCADE"), primary_key=True)
    student_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)


class LessonSession(BaseModelMixin, Base):
    """Scheduled lesson binding one or more paid bookings.

    Status only moves ``scheduled -> active -> completed``.
    """

    __tablename__ = "sessions"

    trainer_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    scheduled_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[SessionStatusEnum] = mapped_column(
        SAEnum(SessionStatusEnum, name="session_status_enum", native_enum=False),
        default=SessionStatusEnum.SCHEDULED,
        nullable=False,
        index=True,
    )
    meeting_room: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    meeting_link: Mapped[str] = mapped_column(String(512), nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_by_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    bookings: Mapped[list["Booking"]] = relationship(back_populates="session", lazy="selectin")
    student_links: Mapped[list[SessionStudent]] = relationship(
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def booking_ids(self) -> list[UUID]:
        return [booking.id for booking in self.bookings]

    @property
    def student_ids(self) -> list[UUID]:
        return [link.student_id for link in self.student_links]

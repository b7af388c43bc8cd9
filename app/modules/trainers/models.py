"""Trainers ORM models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, DateTime, Enum as SAEnum, Float, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin
from app.core.enums import VerificationStatusEnum

DEFAULT_RATING = 5.0


class TrainerProfile(BaseModelMixin, Base):
    """Trainer profile linked to user account.

    ``rejection_date`` is set exactly when ``verification_status`` is
    ``rejected``; ``rating_average`` is written only by the review
    aggregator.
    """

    __tablename__ = "trainer_profiles"
    __table_args__ = (
        CheckConstraint(
            "(verification_status = 'rejected') = (rejection_date IS NOT NULL)",
            name="rejection_date_matches_status",
        ),
    )

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    display_name: Mapped[str] = mapped_column(String(128), nullable=False)
    bio: Mapped[str] = mapped_column(Text, default="", nullable=False)
    education: Mapped[str] = mapped_column(Text, default="", nullable=False)
    experience_details: Mapped[str] = mapped_column(Text, default="", nullable=False)
    phone: Mapped[str] = mapped_column(String(32), default="", nullable=False)
    hourly_rate: Mapped[int] = mapped_column(Integer, default=2500, nullable=False)
    languages: Mapped[list] = mapped_column(JSONB, default=list, nullable=False)
    certifications: Mapped[list] = mapped_column(JSONB, default=list, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    verification_status: Mapped[VerificationStatusEnum] = mapped_column(
        SAEnum(VerificationStatusEnum, name="verification_status_enum", native_enum=False),
        default=VerificationStatusEnum.PENDING,
        nullable=False,
        index=True,
    )
    verification_notes: Mapped[str] = mapped_column(Text, default="", nullable=False)
    applied_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    rejection_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    rating_average: Mapped[float] = mapped_column(Float, default=DEFAULT_RATING, nullable=False)
    total_bookings: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    user = relationship("User", back_populates="trainer_profile")

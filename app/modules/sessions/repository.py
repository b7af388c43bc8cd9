"""Sessions repository layer."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import RoleEnum
from app.modules.booking.models import Booking
from app.modules.sessions.models import LessonSession, SessionStudent


class SessionsRepository:
    """DB operations for sessions domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_session(
        self,
        trainer_id: UUID,
        title: str,
        description: str,
        scheduled_date: datetime,
        duration_minutes: int,
        meeting_room: str,
        meeting_link: str,
        bookings: Sequence[Booking],
        student_ids: Sequence[UUID],
        created_by_id: UUID | None,
    ) -> LessonSession:
        lesson_session = LessonSession(
            trainer_id=trainer_id,
            title=title,
            description=description,
            scheduled_date=scheduled_date,
            duration_minutes=duration_minutes,
            meeting_room=meeting_room,
            meeting_link=meeting_link,
            created_by_id=created_by_id,
            bookings=list(bookings),
            student_links=[SessionStudent(student_id=student_id) for student_id in student_ids],
        )
        self.session.add(lesson_session)
        await self.session.flush()
        return lesson_session

    async def get_session_by_id(self, session_id: UUID) -> LessonSession | None:
        stmt = select(LessonSession).where(LessonSession.id == session_id)
        return await self.session.scalar(stmt)

    async def lock_session_by_id(self, session_id: UUID) -> LessonSession | None:
        """Load session with a row lock held until the transaction ends."""
        stmt = select(LessonSession).where(LessonSession.id == session_id).with_for_update()
        return await self.session.scalar(stmt)

    async def list_sessions_for_user(
        self,
        user_id: UUID,
        role_name: RoleEnum,
        limit: int,
        offset: int,
    ) -> tuple[list[LessonSession], int]:
        base_stmt: Select[tuple[LessonSession]] = select(LessonSession)

        if role_name == RoleEnum.STUDENT:
            base_stmt = base_stmt.join(SessionStudent).where(SessionStudent.student_id == user_id)
        elif role_name == RoleEnum.TRAINER:
            base_stmt = base_stmt.where(LessonSession.trainer_id == user_id)

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(LessonSession.scheduled_date.desc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def update_session(self, lesson_session: LessonSession, **changes) -> LessonSession:
        for key, value in changes.items():
            if value is not None:
                setattr(lesson_session, key, value)
        await self.session.flush()
        return lesson_session

    async def delete_session(self, lesson_session: LessonSession) -> None:
        lesson_session.bookings.clear()
        await self.session.flush()
        await self.session.delete(lesson_session)
        await self.session.flush()

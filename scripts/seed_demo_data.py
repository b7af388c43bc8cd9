"""Seed idempotent demo data for local/non-production environments."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import get_settings
from app.core.database import SessionLocal, close_engine
from app.core.enums import PaymentMethodEnum, PaymentStatusEnum, RoleEnum, VerificationStatusEnum
from app.core.security import hash_password, verify_password
from app.modules.booking.models import Booking
from app.modules.booking.schemas import BookingCreate, BookingPaymentUpdate
from app.modules.booking.service import build_booking_service
from app.modules.identity.models import Role, User
from app.modules.trainers.models import TrainerProfile
from app.shared.utils import utc_now

DEMO_PASSWORD = "DemoPass123!"

DEMO_ADMIN_EMAIL = "demo-admin@trainerhub.dev"
DEMO_TRAINER_EMAIL = "demo-trainer@trainerhub.dev"
DEMO_STUDENT_EMAIL = "demo-student@trainerhub.dev"

DEMO_TRAINER_HOURLY_RATE = 2500


@dataclass(slots=True)
class SeedStats:
    roles_created: int = 0
    users_created: int = 0
    users_updated: int = 0
    trainer_profile_created: bool = False
    booking_created: bool = False
    booking_id: str | None = None


async def _ensure_roles(session: AsyncSession) -> int:
    created = 0
    for role_name in (RoleEnum.STUDENT, RoleEnum.TRAINER, RoleEnum.ADMIN):
        existing = await session.scalar(select(Role).where(Role.name == role_name))
        if existing is None:
            session.add(Role(name=role_name))
            created += 1
    await session.flush()
    return created


async def _ensure_user(
    session: AsyncSession,
    *,
    email: str,
    name: str,
    role_name: RoleEnum,
) -> tuple[User, bool]:
    role = await session.scalar(select(Role).where(Role.name == role_name))
    if role is None:
        raise RuntimeError(f"Role {role_name} was not found after ensure_roles")

    user = await session.scalar(
        select(User).options(selectinload(User.role)).where(User.email == email),
    )
    created = False
    if user is None:
        user = User(
            name=name,
            email=email,
            password_hash=hash_password(DEMO_PASSWORD),
            timezone="UTC",
            is_active=True,
            role_id=role.id,
        )
        session.add(user)
        created = True
    else:
        if not verify_password(DEMO_PASSWORD, user.password_hash):
            user.password_hash = hash_password(DEMO_PASSWORD)
        if user.role_id != role.id:
            user.role_id = role.id
        if not user.is_active:
            user.is_active = True

    await session.flush()
    await session.refresh(user, attribute_names=["role"])
    return user, created


async def _ensure_trainer_profile(session: AsyncSession, trainer_user: User) -> bool:
    profile = await session.scalar(
        select(TrainerProfile).where(TrainerProfile.user_id == trainer_user.id),
    )
    created = profile is None
    if profile is None:
        profile = TrainerProfile(user_id=trainer_user.id, display_name=trainer_user.name, applied_at=utc_now())
        session.add(profile)

    profile.bio = "Demo trainer for local flows: strength basics, mobility and nutrition."
    profile.hourly_rate = DEMO_TRAINER_HOURLY_RATE
    profile.languages = ["English"]
    profile.is_available = True
    profile.verification_status = VerificationStatusEnum.VERIFIED
    profile.rejection_date = None
    await session.flush()
    return created


async def _ensure_paid_booking(
    session: AsyncSession,
    *,
    trainer_user: User,
    student_user: User,
) -> tuple[Booking, bool]:
    existing = await session.scalar(
        select(Booking)
        .where(
            Booking.student_id == student_user.id,
            Booking.trainer_id == trainer_user.id,
            Booking.payment_status == PaymentStatusEnum.COMPLETED,
            Booking.session_id.is_(None),
        )
        .order_by(Booking.created_at.desc()),
    )
    if existing is not None:
        return existing, False

    booking_service = build_booking_service(session)
    demo_payment = booking_service.gateway.create_demo_payment(DEMO_TRAINER_HOURLY_RATE)
    booking = await booking_service.create_booking(
        BookingCreate(
            trainer_id=trainer_user.id,
            payment_method=PaymentMethodEnum.DEMO,
            payment_id=demo_payment.payment_id,
        ),
        student_user,
    )
    booking = await booking_service.mark_payment_status(
        booking.id,
        BookingPaymentUpdate(payment_status=PaymentStatusEnum.COMPLETED, payment_id=demo_payment.payment_id),
        student_user,
    )
    return booking, True


async def _run_seed(*, allow_production: bool) -> SeedStats:
    settings = get_settings()
    if settings.is_production and not allow_production:
        raise RuntimeError(
            "Refusing to seed demo data in production. "
            "Re-run with --allow-production only if you are absolutely sure.",
        )

    stats = SeedStats()

    async with SessionLocal() as session:
        try:
            stats.roles_created = await _ensure_roles(session)

            _, admin_created = await _ensure_user(
                session,
                email=DEMO_ADMIN_EMAIL,
                name="Demo Admin",
                role_name=RoleEnum.ADMIN,
            )
            trainer_user, trainer_created = await _ensure_user(
                session,
                email=DEMO_TRAINER_EMAIL,
                name="Demo Trainer",
                role_name=RoleEnum.TRAINER,
            )
            student_user, student_created = await _ensure_user(
                session,
                email=DEMO_STUDENT_EMAIL,
                name="Demo Student",
                role_name=RoleEnum.STUDENT,
            )

            stats.users_created = sum([admin_created, trainer_created, student_created])
            stats.users_updated = 3 - stats.users_created

            stats.trainer_profile_created = await _ensure_trainer_profile(session, trainer_user)
            if settings.payments_demo_enabled:
                booking, stats.booking_created = await _ensure_paid_booking(
                    session,
                    trainer_user=trainer_user,
                    student_user=student_user,
                )
                stats.booking_id = str(booking.id)

            await session.commit()
        except Exception:
            await session.rollback()
            raise

    return stats


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Seed idempotent demo data for TrainerHub (users, verified trainer profile, "
            "paid demo booking ready to be scheduled)."
        ),
    )
    parser.add_argument(
        "--allow-production",
        action="store_true",
        help="Allow seeding even when APP_ENV is production/prod.",
    )
    return parser


def _print_summary(stats: SeedStats) -> None:
    print("Demo seed completed.")
    print(f"- Roles created: {stats.roles_created}")
    print(f"- Users created: {stats.users_created}")
    print(f"- Users updated: {stats.users_updated}")
    print(f"- Trainer profile created: {stats.trainer_profile_created}")
    print(f"- Paid booking created: {stats.booking_created}")
    print(f"- Paid booking id: {stats.booking_id}")
    print("")
    print("Demo credentials (non-production only):")
    print(f"- admin:   {DEMO_ADMIN_EMAIL} / {DEMO_PASSWORD}")
    print(f"- trainer: {DEMO_TRAINER_EMAIL} / {DEMO_PASSWORD}")
    print(f"- student: {DEMO_STUDENT_EMAIL} / {DEMO_PASSWORD}")


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    try:
        stats = asyncio.run(_run_seed(allow_production=args.allow_production))
    except Exception as exc:
        print(f"Demo seed failed: {exc}")
        return 1
    finally:
        asyncio.run(close_engine())

    _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

"""Trainer verification workflow.

States: ``pending -> verified`` or ``pending -> rejected -> pending`` once
the re-application cooldown has elapsed. Decisions come from signed
decision links or from an admin override that must carry a reason.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import RoleEnum, VerificationActionEnum, VerificationStatusEnum
from app.modules.audit.repository import AuditRepository
from app.modules.identity.models import User
from app.modules.identity.repository import IdentityRepository
from app.modules.trainers.models import TrainerProfile
from app.modules.trainers.repository import TrainersRepository
from app.modules.trainers.schemas import TrainerApplicationData
from app.modules.verification.tokens import application_marker, read_decision_token
from app.shared.exceptions import (
    AlreadyResolvedException,
    ConflictException,
    CooldownNotElapsedException,
    InvalidOrExpiredTokenException,
    NotFoundException,
    UnauthorizedException,
)
from app.shared.utils import utc_now

logger = logging.getLogger(__name__)
settings = get_settings()

_DECISION_TO_STATUS = {
    VerificationActionEnum.APPROVE: VerificationStatusEnum.VERIFIED,
    VerificationActionEnum.REJECT: VerificationStatusEnum.REJECTED,
}


class VerificationService:
    """Owns trainer onboarding and re-onboarding transitions."""

    def __init__(
        self,
        trainers_repository: TrainersRepository,
        identity_repository: IdentityRepository,
        audit_repository: AuditRepository,
        cooldown: timedelta | None = None,
    ) -> None:
        self.trainers_repository = trainers_repository
        self.identity_repository = identity_repository
        self.audit_repository = audit_repository
        self.cooldown = cooldown if cooldown is not None else timedelta(days=settings.trainer_reapply_cooldown_days)

    async def submit_application(
        self,
        user: User,
        application: TrainerApplicationData,
        password_hash: str | None = None,
    ) -> TrainerProfile:
        """Create a pending profile or reset a rejected one after cooldown."""
        now = utc_now()
        profile = await self.trainers_repository.lock_profile_by_user_id(user.id)

        if profile is None:
            profile = await self.trainers_repository.create_profile(
                user_id=user.id,
                display_name=user.name,
                applied_at=now,
                **application.to_profile_fields(),
            )
        elif profile.verification_status == VerificationStatusEnum.REJECTED:
            elapsed = now - profile.rejection_date
            if elapsed < self.cooldown:
                remaining = self.cooldown - elapsed
                raise CooldownNotElapsedException(remaining_seconds=int(remaining.total_seconds()) + 1)

            await self.trainers_repository.update_profile(
                profile,
                display_name=user.name,
                applied_at=now,
                verification_notes="",
                **application.to_profile_fields(),
            )
            await self.trainers_repository.set_verification_status(
                profile,
                VerificationStatusEnum.PENDING,
                rejection_date=None,
            )
            if password_hash is not None:
                await self.identity_repository.set_password_hash(user, password_hash)
        else:
            raise ConflictException("Trainer application already exists")

        await self.audit_repository.create_outbox_event(
            aggregate_type="trainer_profile",
            aggregate_id=str(user.id),
            event_type="trainer.application.submitted",
            payload={
                "trainer_id": str(user.id),
                "name": user.name,
                "email": user.email,
                "applied_at": profile.applied_at.isoformat(),
            },
        )
        return profile

    async def resolve(self, token: str, action: VerificationActionEnum) -> tuple[TrainerProfile, User]:
        """Redeem a decision link.

        The pending-status check is the only replay guard: the second
        redemption of any link for the same application fails with
        ``AlreadyResolvedException`` and enqueues nothing.
        """
        claims = read_decision_token(token)
        if claims.action != action:
            raise InvalidOrExpiredTokenException("Invalid or expired token")

        profile = await self.trainers_repository.lock_profile_by_user_id(claims.trainer_id)
        user = await self.identity_repository.get_user_by_id(claims.trainer_id)
        if profile is None or user is None:
            raise NotFoundException("Trainer not found")

        if profile.verification_status != VerificationStatusEnum.PENDING:
            raise AlreadyResolvedException(
                f"This application has already been {profile.verification_status.value}",
            )
        if application_marker(profile.applied_at) != claims.application_marker:
            raise InvalidOrExpiredTokenException("This link belongs to a previous application")

        await self._apply_decision(profile, user, action)
        return profile, user

    async def override(
        self,
        trainer_id: UUID,
        action: VerificationActionEnum,
        reason: str,
        actor: User,
    ) -> TrainerProfile:
        """Admin decision outside the link flow, recorded in the audit log."""
        if actor.role.name != RoleEnum.ADMIN:
            raise UnauthorizedException("Only admin can override trainer verification")

        profile = await self.trainers_repository.lock_profile_by_user_id(trainer_id)
        user = await self.identity_repository.get_user_by_id(trainer_id)
        if profile is None or user is None:
            raise NotFoundException("Trainer not found")

        previous_status = profile.verification_status
        if previous_status == _DECISION_TO_STATUS[action]:
            raise AlreadyResolvedException(f"Trainer is already {previous_status.value}")

        await self.trainers_repository.update_profile(profile, verification_notes=reason)
        await self._apply_decision(profile, user, action)
        await self.audit_repository.create_audit_log(
            actor_id=actor.id,
            action="trainer.verification.override",
            entity_type="trainer_profile",
            entity_id=str(trainer_id),
            payload={
                "from_status": previous_status.value,
                "to_status": profile.verification_status.value,
                "reason": reason,
            },
        )
        return profile

    async def _apply_decision(self, profile: TrainerProfile, user: User, action: VerificationActionEnum) -> None:
        status = _DECISION_TO_STATUS[action]
        rejection_date = utc_now() if status == VerificationStatusEnum.REJECTED else None
        await self.trainers_repository.set_verification_status(profile, status, rejection_date=rejection_date)

        event_type = (
            "trainer.verification.approved"
            if status == VerificationStatusEnum.VERIFIED
            else "trainer.verification.rejected"
        )
        await self.audit_repository.create_outbox_event(
            aggregate_type="trainer_profile",
            aggregate_id=str(user.id),
            event_type=event_type,
            payload={
                "trainer_id": str(user.id),
                "name": user.name,
                "email": user.email,
            },
        )
        logger.info("Trainer %s verification set to %s", user.id, status.value)


async def get_verification_service(session: AsyncSession = Depends(get_db_session)) -> VerificationService:
    """Dependency provider for verification service."""
    return VerificationService(
        trainers_repository=TrainersRepository(session),
        identity_repository=IdentityRepository(session),
        audit_repository=AuditRepository(session),
    )

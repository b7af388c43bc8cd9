"""Trainers business logic layer."""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.core.enums import RoleEnum, VerificationStatusEnum
from app.modules.identity.models import User
from app.modules.trainers.models import TrainerProfile
from app.modules.trainers.repository import TrainersRepository
from app.modules.trainers.schemas import TrainerProfileUpdate
from app.shared.exceptions import NotFoundException, UnauthorizedException


class TrainersService:
    """Trainers domain service.

    Verification fields and the rating aggregate are not writable here;
    they belong to the verification workflow and the review aggregator.
    """

    def __init__(self, repository: TrainersRepository) -> None:
        self.repository = repository

    async def list_public_profiles(self, limit: int, offset: int) -> tuple[list[TrainerProfile], int]:
        """List verified trainers only."""
        return await self.repository.list_verified_profiles(limit=limit, offset=offset)

    async def get_public_profile(self, user_id: UUID) -> TrainerProfile:
        """Return verified trainer; anyone else is reported as missing."""
        profile = await self.repository.get_profile_by_user_id(user_id)
        if profile is None or profile.verification_status != VerificationStatusEnum.VERIFIED:
            raise NotFoundException("Trainer not found")
        return profile

    async def get_own_profile(self, actor: User) -> TrainerProfile:
        if actor.role.name != RoleEnum.TRAINER:
            raise UnauthorizedException("Only trainers have a trainer profile")
        profile = await self.repository.get_profile_by_user_id(actor.id)
        if profile is None:
            raise NotFoundException("Trainer profile not found")
        return profile

    async def update_own_profile(self, payload: TrainerProfileUpdate, actor: User) -> TrainerProfile:
        """Update owner-editable fields."""
        profile = await self.get_own_profile(actor)
        return await self.repository.update_profile(profile, **payload.model_dump(exclude_none=True))

    async def list_applications(
        self,
        status: VerificationStatusEnum,
        actor: User,
        limit: int,
        offset: int,
    ) -> tuple[list[TrainerProfile], int]:
        """List trainer profiles by verification status (admin only)."""
        if actor.role.name != RoleEnum.ADMIN:
            raise UnauthorizedException("Only admin can list trainer applications")
        return await self.repository.list_profiles_by_status(status, limit=limit, offset=offset)


async def get_trainers_service(session: AsyncSession = Depends(get_db_session)) -> TrainersService:
    """Dependency provider for trainers service."""
    return TrainersService(TrainersRepository(session))

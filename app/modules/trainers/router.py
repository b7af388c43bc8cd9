"""Trainers API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.core.enums import VerificationStatusEnum
from app.modules.identity.service import get_current_user
from app.modules.trainers.schemas import (
    TrainerProfileRead,
    TrainerProfileUpdate,
    TrainerPublicRead,
    VerificationOverrideRequest,
)
from app.modules.trainers.service import TrainersService, get_trainers_service
from app.modules.verification.service import VerificationService, get_verification_service
from app.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/trainers", tags=["trainers"])


@router.get("", response_model=Page[TrainerPublicRead])
async def list_trainers(
    pagination=Depends(get_pagination_params),
    service: TrainersService = Depends(get_trainers_service),
) -> Page[TrainerPublicRead]:
    """List verified trainers."""
    items, total = await service.list_public_profiles(pagination.limit, pagination.offset)
    serialized = [TrainerPublicRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.get("/me", response_model=TrainerProfileRead)
async def get_my_profile(
    service: TrainersService = Depends(get_trainers_service),
    current_user=Depends(get_current_user),
) -> TrainerProfileRead:
    """Return own trainer profile."""
    profile = await service.get_own_profile(current_user)
    return TrainerProfileRead.model_validate(profile)


@router.patch("/me", response_model=TrainerProfileRead)
async def update_my_profile(
    payload: TrainerProfileUpdate,
    service: TrainersService = Depends(get_trainers_service),
    current_user=Depends(get_current_user),
) -> TrainerProfileRead:
    """Update own trainer profile."""
    profile = await service.update_own_profile(payload, current_user)
    return TrainerProfileRead.model_validate(profile)


@router.get("/applications", response_model=Page[TrainerProfileRead])
async def list_applications(
    verification_status: VerificationStatusEnum = Query(default=VerificationStatusEnum.PENDING, alias="status"),
    pagination=Depends(get_pagination_params),
    service: TrainersService = Depends(get_trainers_service),
    current_user=Depends(get_current_user),
) -> Page[TrainerProfileRead]:
    """List trainer applications by verification status."""
    items, total = await service.list_applications(
        verification_status,
        current_user,
        pagination.limit,
        pagination.offset,
    )
    serialized = [TrainerProfileRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.get("/{user_id}", response_model=TrainerPublicRead)
async def get_trainer(
    user_id: UUID,
    service: TrainersService = Depends(get_trainers_service),
) -> TrainerPublicRead:
    """Return a verified trainer."""
    profile = await service.get_public_profile(user_id)
    return TrainerPublicRead.model_validate(profile)


@router.post("/{user_id}/verification", response_model=TrainerProfileRead)
async def override_verification(
    user_id: UUID,
    payload: VerificationOverrideRequest,
    service: VerificationService = Depends(get_verification_service),
    current_user=Depends(get_current_user),
) -> TrainerProfileRead:
    """Approve or reject a trainer as admin, with a recorded reason."""
    profile = await service.override(user_id, payload.action, payload.reason, current_user)
    return TrainerProfileRead.model_validate(profile)

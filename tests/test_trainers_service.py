from __future__ import annotations

from dataclasses import dataclass, field
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest
from pydantic import ValidationError

from app.core.enums import RoleEnum, VerificationStatusEnum
from app.modules.trainers.schemas import TrainerProfileUpdate
from app.modules.trainers.service import TrainersService
from app.shared.exceptions import NotFoundException, UnauthorizedException


@dataclass
class FakeProfile:
    user_id: UUID
    verification_status: VerificationStatusEnum
    display_name: str = "Coach"
    bio: str = ""
    hourly_rate: int = 2500
    is_available: bool = True
    rating_average: float = 5.0
    languages: list[str] = field(default_factory=list)


class FakeTrainersRepository:
    def __init__(self, profiles: list[FakeProfile]) -> None:
        self.profiles = {profile.user_id: profile for profile in profiles}

    async def get_profile_by_user_id(self, user_id: UUID) -> FakeProfile | None:
        return self.profiles.get(user_id)

    async def list_verified_profiles(self, limit: int, offset: int) -> tuple[list[FakeProfile], int]:
        return await self.list_profiles_by_status(VerificationStatusEnum.VERIFIED, limit=limit, offset=offset)

    async def list_profiles_by_status(
        self,
        status: VerificationStatusEnum,
        limit: int,
        offset: int,
    ) -> tuple[list[FakeProfile], int]:
        items = [profile for profile in self.profiles.values() if profile.verification_status == status]
        return items[offset : offset + limit], len(items)

    async def update_profile(self, profile: FakeProfile, **changes) -> FakeProfile:
        for key, value in changes.items():
            setattr(profile, key, value)
        return profile


def make_actor(role: RoleEnum, user_id: UUID | None = None) -> SimpleNamespace:
    return SimpleNamespace(id=user_id or uuid4(), role=SimpleNamespace(name=role))


def make_service(*statuses: VerificationStatusEnum) -> tuple[TrainersService, list[FakeProfile]]:
    profiles = [FakeProfile(user_id=uuid4(), verification_status=status) for status in statuses]
    return TrainersService(FakeTrainersRepository(profiles)), profiles  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_directory_lists_verified_trainers_only() -> None:
    service, profiles = make_service(
        VerificationStatusEnum.VERIFIED,
        VerificationStatusEnum.PENDING,
        VerificationStatusEnum.REJECTED,
        VerificationStatusEnum.VERIFIED,
    )

    items, total = await service.list_public_profiles(limit=10, offset=0)

    assert total == 2
    assert [item.user_id for item in items] == [profiles[0].user_id, profiles[3].user_id]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [VerificationStatusEnum.PENDING, VerificationStatusEnum.REJECTED])
async def test_unverified_profile_is_reported_missing(status: VerificationStatusEnum) -> None:
    service, profiles = make_service(status)

    with pytest.raises(NotFoundException):
        await service.get_public_profile(profiles[0].user_id)


@pytest.mark.asyncio
async def test_owner_updates_editable_fields_without_touching_rating() -> None:
    service, profiles = make_service(VerificationStatusEnum.VERIFIED)
    owner = make_actor(RoleEnum.TRAINER, profiles[0].user_id)

    updated = await service.update_own_profile(TrainerProfileUpdate(hourly_rate=4000, is_available=False), owner)

    assert updated.hourly_rate == 4000
    assert updated.is_available is False
    assert updated.bio == ""
    assert updated.rating_average == 5.0
    assert updated.verification_status == VerificationStatusEnum.VERIFIED


def test_profile_update_ignores_protected_fields() -> None:
    payload = TrainerProfileUpdate.model_validate({"bio": "Coach", "rating_average": 1.0})

    assert payload.model_dump(exclude_none=True) == {"bio": "Coach"}


def test_profile_update_rejects_negative_rate() -> None:
    with pytest.raises(ValidationError):
        TrainerProfileUpdate(hourly_rate=-1)


@pytest.mark.asyncio
async def test_students_have_no_trainer_profile() -> None:
    service, _ = make_service(VerificationStatusEnum.VERIFIED)

    with pytest.raises(UnauthorizedException):
        await service.get_own_profile(make_actor(RoleEnum.STUDENT))


@pytest.mark.asyncio
async def test_application_queue_is_admin_only() -> None:
    service, profiles = make_service(VerificationStatusEnum.PENDING, VerificationStatusEnum.VERIFIED)

    with pytest.raises(UnauthorizedException):
        await service.list_applications(VerificationStatusEnum.PENDING, make_actor(RoleEnum.TRAINER), 10, 0)

    items, total = await service.list_applications(
        VerificationStatusEnum.PENDING,
        make_actor(RoleEnum.ADMIN),
        10,
        0,
    )
    assert total == 1
    assert items[0].user_id == profiles[0].user_id

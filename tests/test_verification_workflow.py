from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest

import app.core.security as security_module
import app.modules.verification.service as verification_service_module
import app.modules.verification.tokens as tokens_module
from app.core.enums import RoleEnum, VerificationActionEnum, VerificationStatusEnum
from app.core.security import create_password_reset_token
from app.modules.trainers.schemas import TrainerApplicationData
from app.modules.verification.service import VerificationService
from app.modules.verification.tokens import issue_decision_link, read_decision_token
from app.shared.exceptions import (
    AlreadyResolvedException,
    ConflictException,
    CooldownNotElapsedException,
    InvalidOrExpiredTokenException,
    UnauthorizedException,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
COOLDOWN = timedelta(days=180)


@dataclass
class FakeProfile:
    user_id: UUID
    display_name: str
    applied_at: datetime
    verification_status: VerificationStatusEnum = VerificationStatusEnum.PENDING
    rejection_date: datetime | None = None
    verification_notes: str = ""
    bio: str = ""
    education: str = ""
    experience_details: str = ""
    phone: str = ""
    hourly_rate: int = 2500
    languages: list = field(default_factory=list)
    certifications: list = field(default_factory=list)


class FakeTrainersRepository:
    def __init__(self, profiles: list[FakeProfile] | None = None) -> None:
        self.profiles = {profile.user_id: profile for profile in profiles or []}

    async def create_profile(self, user_id: UUID, display_name: str, applied_at: datetime, **fields) -> FakeProfile:
        profile = FakeProfile(user_id=user_id, display_name=display_name, applied_at=applied_at, **fields)
        self.profiles[user_id] = profile
        return profile

    async def lock_profile_by_user_id(self, user_id: UUID) -> FakeProfile | None:
        return self.profiles.get(user_id)

    async def update_profile(self, profile: FakeProfile, **changes) -> FakeProfile:
        for key, value in changes.items():
            if value is not None:
                setattr(profile, key, value)
        return profile

    async def set_verification_status(
        self,
        profile: FakeProfile,
        status: VerificationStatusEnum,
        rejection_date: datetime | None,
    ) -> FakeProfile:
        profile.verification_status = status
        profile.rejection_date = rejection_date
        return profile


class FakeIdentityRepository:
    def __init__(self, users: list[SimpleNamespace]) -> None:
        self.users = {user.id: user for user in users}

    async def get_user_by_id(self, user_id: UUID) -> SimpleNamespace | None:
        return self.users.get(user_id)

    async def set_password_hash(self, user: SimpleNamespace, password_hash: str) -> SimpleNamespace:
        user.password_hash = password_hash
        return user


class FakeAuditRepository:
    def __init__(self) -> None:
        self.outbox: list[dict] = []
        self.audit_logs: list[dict] = []

    async def create_outbox_event(self, **kwargs) -> dict:
        self.outbox.append(kwargs)
        return kwargs

    async def create_audit_log(self, **kwargs) -> dict:
        self.audit_logs.append(kwargs)
        return kwargs


def make_user(role: RoleEnum = RoleEnum.TRAINER) -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid4(),
        name="Alex Trainer",
        email=f"{uuid4().hex[:8]}@example.com",
        password_hash="old-hash",
        role=SimpleNamespace(name=role),
    )


def make_service(
    user: SimpleNamespace,
    profiles: list[FakeProfile] | None = None,
) -> tuple[VerificationService, FakeTrainersRepository, FakeAuditRepository]:
    trainers_repo = FakeTrainersRepository(profiles)
    audit_repo = FakeAuditRepository()
    service = VerificationService(
        trainers_repository=trainers_repo,  # type: ignore[arg-type]
        identity_repository=FakeIdentityRepository([user]),  # type: ignore[arg-type]
        audit_repository=audit_repo,  # type: ignore[arg-type]
        cooldown=COOLDOWN,
    )
    return service, trainers_repo, audit_repo


@pytest.fixture(autouse=True)
def frozen_now(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(verification_service_module, "utc_now", lambda: NOW)


@pytest.mark.asyncio
async def test_first_application_creates_pending_profile_and_event() -> None:
    user = make_user()
    service, trainers_repo, audit_repo = make_service(user)

    profile = await service.submit_application(user, TrainerApplicationData(bio="Coach", hourly_rate=4000))

    assert profile.verification_status == VerificationStatusEnum.PENDING
    assert profile.rejection_date is None
    assert profile.applied_at == NOW
    assert profile.hourly_rate == 4000
    assert trainers_repo.profiles[user.id] is profile
    assert [event["event_type"] for event in audit_repo.outbox] == ["trainer.application.submitted"]
    assert audit_repo.outbox[0]["payload"]["applied_at"] == NOW.isoformat()


@pytest.mark.asyncio
async def test_reapplication_inside_cooldown_is_refused_with_remaining_time() -> None:
    user = make_user()
    rejected_at = NOW - timedelta(days=30)
    profile = FakeProfile(
        user_id=user.id,
        display_name=user.name,
        applied_at=NOW - timedelta(days=31),
        verification_status=VerificationStatusEnum.REJECTED,
        rejection_date=rejected_at,
    )
    service, _, audit_repo = make_service(user, [profile])

    with pytest.raises(CooldownNotElapsedException) as exc_info:
        await service.submit_application(user, TrainerApplicationData(), password_hash="new-hash")

    expected_remaining = int(timedelta(days=150).total_seconds()) + 1
    assert exc_info.value.remaining_seconds == expected_remaining
    assert exc_info.value.details == {"remaining_seconds": expected_remaining}
    assert profile.verification_status == VerificationStatusEnum.REJECTED
    assert profile.rejection_date == rejected_at
    assert user.password_hash == "old-hash"
    assert audit_repo.outbox == []


@pytest.mark.asyncio
async def test_reapplication_after_cooldown_resets_profile_to_pending() -> None:
    user = make_user()
    profile = FakeProfile(
        user_id=user.id,
        display_name="Old Name",
        applied_at=NOW - timedelta(days=400),
        verification_status=VerificationStatusEnum.REJECTED,
        rejection_date=NOW - COOLDOWN,
        verification_notes="Missing certificates",
    )
    service, _, audit_repo = make_service(user, [profile])

    result = await service.submit_application(
        user,
        TrainerApplicationData(education="Sports science"),
        password_hash="new-hash",
    )

    assert result is profile
    assert profile.verification_status == VerificationStatusEnum.PENDING
    assert profile.rejection_date is None
    assert profile.applied_at == NOW
    assert profile.display_name == user.name
    assert profile.education == "Sports science"
    assert user.password_hash == "new-hash"
    assert len(audit_repo.outbox) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [VerificationStatusEnum.PENDING, VerificationStatusEnum.VERIFIED])
async def test_application_for_non_rejected_profile_conflicts(status: VerificationStatusEnum) -> None:
    user = make_user()
    profile = FakeProfile(user_id=user.id, display_name=user.name, applied_at=NOW, verification_status=status)
    service, _, _ = make_service(user, [profile])

    with pytest.raises(ConflictException):
        await service.submit_application(user, TrainerApplicationData())


def test_decision_token_carries_trainer_action_and_cycle() -> None:
    trainer_id = uuid4()
    token = issue_decision_link(trainer_id, VerificationActionEnum.REJECT, NOW)

    claims = read_decision_token(token)

    assert claims.trainer_id == trainer_id
    assert claims.action == VerificationActionEnum.REJECT
    assert claims.application_marker == int(NOW.timestamp()) * 1_000_000


@pytest.mark.parametrize(
    "token",
    [
        "not-a-token",
        create_password_reset_token(str(uuid4()), "some-hash"),
    ],
)
def test_foreign_or_malformed_decision_token_is_rejected(token: str) -> None:
    with pytest.raises(InvalidOrExpiredTokenException):
        read_decision_token(token)


@pytest.mark.asyncio
async def test_resolve_approve_then_replay_is_already_resolved() -> None:
    user = make_user()
    profile = FakeProfile(user_id=user.id, display_name=user.name, applied_at=NOW - timedelta(hours=1))
    service, _, audit_repo = make_service(user, [profile])
    approve = issue_decision_link(user.id, VerificationActionEnum.APPROVE, profile.applied_at)
    reject = issue_decision_link(user.id, VerificationActionEnum.REJECT, profile.applied_at)

    resolved_profile, resolved_user = await service.resolve(approve, VerificationActionEnum.APPROVE)

    assert resolved_profile.verification_status == VerificationStatusEnum.VERIFIED
    assert resolved_profile.rejection_date is None
    assert resolved_user is user

    with pytest.raises(AlreadyResolvedException):
        await service.resolve(approve, VerificationActionEnum.APPROVE)
    with pytest.raises(AlreadyResolvedException):
        await service.resolve(reject, VerificationActionEnum.REJECT)

    assert profile.verification_status == VerificationStatusEnum.VERIFIED
    assert [event["event_type"] for event in audit_repo.outbox] == ["trainer.verification.approved"]


@pytest.mark.asyncio
async def test_resolve_reject_sets_rejection_date() -> None:
    user = make_user()
    profile = FakeProfile(user_id=user.id, display_name=user.name, applied_at=NOW - timedelta(hours=1))
    service, _, audit_repo = make_service(user, [profile])
    token = issue_decision_link(user.id, VerificationActionEnum.REJECT, profile.applied_at)

    await service.resolve(token, VerificationActionEnum.REJECT)

    assert profile.verification_status == VerificationStatusEnum.REJECTED
    assert profile.rejection_date == NOW
    assert audit_repo.outbox[0]["event_type"] == "trainer.verification.rejected"


@pytest.mark.asyncio
async def test_resolve_with_mismatched_action_is_invalid() -> None:
    user = make_user()
    profile = FakeProfile(user_id=user.id, display_name=user.name, applied_at=NOW)
    service, _, audit_repo = make_service(user, [profile])
    token = issue_decision_link(user.id, VerificationActionEnum.APPROVE, profile.applied_at)

    with pytest.raises(InvalidOrExpiredTokenException):
        await service.resolve(token, VerificationActionEnum.REJECT)

    assert profile.verification_status == VerificationStatusEnum.PENDING
    assert audit_repo.outbox == []


@pytest.mark.asyncio
async def test_link_from_previous_application_cycle_is_invalid() -> None:
    user = make_user()
    previous_applied_at = NOW - timedelta(days=200)
    profile = FakeProfile(user_id=user.id, display_name=user.name, applied_at=NOW - timedelta(minutes=5))
    service, _, _ = make_service(user, [profile])
    stale_token = issue_decision_link(user.id, VerificationActionEnum.APPROVE, previous_applied_at)

    with pytest.raises(InvalidOrExpiredTokenException):
        await service.resolve(stale_token, VerificationActionEnum.APPROVE)

    assert profile.verification_status == VerificationStatusEnum.PENDING


@pytest.mark.asyncio
async def test_override_requires_admin() -> None:
    trainer = make_user()
    profile = FakeProfile(user_id=trainer.id, display_name=trainer.name, applied_at=NOW)
    service, _, _ = make_service(trainer, [profile])

    with pytest.raises(UnauthorizedException):
        await service.override(trainer.id, VerificationActionEnum.APPROVE, "Checked documents", trainer)


@pytest.mark.asyncio
async def test_admin_override_is_audited_and_notifies() -> None:
    trainer = make_user()
    admin = make_user(RoleEnum.ADMIN)
    profile = FakeProfile(
        user_id=trainer.id,
        display_name=trainer.name,
        applied_at=NOW - timedelta(days=2),
        verification_status=VerificationStatusEnum.VERIFIED,
    )
    service, _, audit_repo = make_service(trainer, [profile])

    await service.override(trainer.id, VerificationActionEnum.REJECT, "Certificate expired", admin)

    assert profile.verification_status == VerificationStatusEnum.REJECTED
    assert profile.rejection_date == NOW
    assert profile.verification_notes == "Certificate expired"
    assert audit_repo.audit_logs[0]["action"] == "trainer.verification.override"
    assert audit_repo.audit_logs[0]["payload"] == {
        "from_status": "verified",
        "to_status": "rejected",
        "reason": "Certificate expired",
    }
    assert audit_repo.outbox[0]["event_type"] == "trainer.verification.rejected"

    with pytest.raises(AlreadyResolvedException):
        await service.override(trainer.id, VerificationActionEnum.REJECT, "Again", admin)


def issued_ago(monkeypatch: pytest.MonkeyPatch, age: timedelta, issue):
    """Mint a token as if the issuing clock read ``age`` earlier than now."""
    issued_at = datetime.now(UTC) - age
    with monkeypatch.context() as patch:
        patch.setattr(security_module, "datetime", SimpleNamespace(now=lambda tz=None: issued_at))
        return issue()


@pytest.mark.asyncio
async def test_decision_link_expires_after_configured_days(monkeypatch: pytest.MonkeyPatch) -> None:
    user = make_user()
    profile = FakeProfile(user_id=user.id, display_name=user.name, applied_at=NOW - timedelta(days=8))
    service, _, audit_repo = make_service(user, [profile])
    lifetime = timedelta(days=tokens_module.settings.trainer_decision_link_expire_days)

    expired = issued_ago(
        monkeypatch,
        lifetime + timedelta(minutes=1),
        lambda: issue_decision_link(user.id, VerificationActionEnum.APPROVE, profile.applied_at),
    )

    with pytest.raises(InvalidOrExpiredTokenException):
        read_decision_token(expired)
    with pytest.raises(InvalidOrExpiredTokenException):
        await service.resolve(expired, VerificationActionEnum.APPROVE)
    assert profile.verification_status == VerificationStatusEnum.PENDING
    assert audit_repo.outbox == []

    still_valid = issued_ago(
        monkeypatch,
        lifetime - timedelta(minutes=1),
        lambda: issue_decision_link(user.id, VerificationActionEnum.APPROVE, profile.applied_at),
    )
    await service.resolve(still_valid, VerificationActionEnum.APPROVE)
    assert profile.verification_status == VerificationStatusEnum.VERIFIED

"""Identity business logic layer."""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID, uuid4

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import RoleEnum, VerificationStatusEnum
from app.core.security import (
    PASSWORD_RESET_TOKEN_TYPE,
    create_access_token,
    create_refresh_token,
    decode_capability_token,
    decode_token,
    hash_password,
    oauth2_scheme,
    password_fingerprint,
    verify_password,
)
from app.modules.audit.repository import AuditRepository
from app.modules.identity.models import User
from app.modules.identity.repository import IdentityRepository
from app.modules.identity.schemas import LoginRequest, TokenPair, UserCreate
from app.modules.trainers.repository import TrainersRepository
from app.modules.trainers.schemas import TrainerApplicationData
from app.modules.verification.service import VerificationService
from app.shared.exceptions import (
    ConflictException,
    InvalidOrExpiredTokenException,
    NotFoundException,
    UnauthorizedException,
)
from app.shared.utils import utc_now

logger = logging.getLogger(__name__)
settings = get_settings()

PASSWORD_RESET_GENERIC_MESSAGE = "If an account with that email exists, a password reset link has been sent."

_SELF_REGISTRATION_ROLES = (RoleEnum.STUDENT, RoleEnum.TRAINER)


class IdentityService:
    """Identity domain service."""

    def __init__(
        self,
        repository: IdentityRepository,
        trainers_repository: TrainersRepository,
        verification_service: VerificationService,
        audit_repository: AuditRepository,
    ) -> None:
        self.repository = repository
        self.trainers_repository = trainers_repository
        self.verification_service = verification_service
        self.audit_repository = audit_repository

    async def ensure_default_roles(self) -> None:
        """Ensure all default roles exist."""
        for role_name in (RoleEnum.STUDENT, RoleEnum.TRAINER, RoleEnum.ADMIN):
            role = await self.repository.get_role_by_name(role_name)
            if role is None:
                await self.repository.create_role(role_name)

    async def register(self, payload: UserCreate) -> tuple[User, bool]:
        """Register new user or re-submit a rejected trainer application.

        Returns the user and whether a new account was created.
        """
        if payload.role not in _SELF_REGISTRATION_ROLES:
            raise UnauthorizedException("Only student and trainer accounts can be registered")

        password_hash = hash_password(payload.password)
        application = payload.trainer_application or TrainerApplicationData()

        existing_user = await self.repository.get_user_by_email(payload.email)
        if existing_user is not None:
            if payload.role == RoleEnum.TRAINER and existing_user.role.name == RoleEnum.TRAINER:
                profile = await self.trainers_repository.get_profile_by_user_id(existing_user.id)
                if profile is not None and profile.verification_status == VerificationStatusEnum.REJECTED:
                    await self.verification_service.submit_application(
                        existing_user,
                        application,
                        password_hash=password_hash,
                    )
                    return existing_user, False
            raise ConflictException("User with this email already exists")

        role = await self.repository.get_role_by_name(payload.role)
        if role is None:
            raise NotFoundException("Role not found")

        user = await self.repository.create_user(
            name=payload.name,
            email=payload.email,
            password_hash=password_hash,
            timezone=payload.timezone,
            role_id=role.id,
        )
        if payload.role == RoleEnum.TRAINER:
            await self.verification_service.submit_application(user, application)
        return user, True

    async def login(self, payload: LoginRequest) -> TokenPair:
        """Authenticate user and issue JWT tokens."""
        user = await self.repository.get_user_by_email(payload.email)
        if user is None or not verify_password(payload.password, user.password_hash):
            raise UnauthorizedException("Invalid credentials")

        if not user.is_active:
            raise UnauthorizedException("User is inactive")

        if user.role.name == RoleEnum.TRAINER:
            await self._ensure_trainer_can_sign_in(user)

        return await self._issue_token_pair(user)

    async def _ensure_trainer_can_sign_in(self, user: User) -> None:
        profile = await self.trainers_repository.get_profile_by_user_id(user.id)
        if profile is None or profile.verification_status == VerificationStatusEnum.PENDING:
            raise UnauthorizedException(
                "Your trainer application is under review. You will be notified by email once it is decided.",
            )
        if profile.verification_status == VerificationStatusEnum.REJECTED:
            raise UnauthorizedException(
                "Your trainer application was rejected. You can re-apply after the cooldown period.",
            )

    async def _issue_token_pair(self, user: User) -> TokenPair:
        token_id = str(uuid4())
        access_token = create_access_token(subject=str(user.id), role=user.role.name)
        refresh_token = create_refresh_token(subject=str(user.id), token_id=token_id, role=user.role.name)

        expires_at = utc_now() + timedelta(days=settings.refresh_token_expire_days)
        await self.repository.create_refresh_token(user.id, token_id, expires_at)

        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    async def refresh_tokens(self, refresh_token_value: str) -> TokenPair:
        """Rotate refresh token and issue new token pair."""
        payload = decode_token(refresh_token_value)
        if payload.get("type") != "refresh":
            raise UnauthorizedException("Invalid token type")

        token_id = payload.get("jti")
        subject = payload.get("sub")
        if not token_id or not subject:
            raise UnauthorizedException("Invalid refresh token")

        db_token = await self.repository.get_refresh_token_by_id(token_id)
        if db_token is None or db_token.revoked_at is not None or db_token.expires_at <= utc_now():
            raise UnauthorizedException("Refresh token is not valid")

        await self.repository.revoke_refresh_token(token_id, utc_now())

        user = await self.repository.get_user_by_id(UUID(subject))
        if user is None or not user.is_active:
            raise UnauthorizedException("User is not valid")

        return await self._issue_token_pair(user)

    async def forgot_password(self, email: str) -> str:
        """Queue a reset email when the account exists; the answer never tells."""
        user = await self.repository.get_user_by_email(email)
        if user is None or not user.is_active:
            logger.info("Password reset requested for unknown or inactive account")
            return PASSWORD_RESET_GENERIC_MESSAGE

        await self.audit_repository.create_outbox_event(
            aggregate_type="user",
            aggregate_id=str(user.id),
            event_type="identity.password_reset.requested",
            payload={"user_id": str(user.id), "email": user.email, "name": user.name},
        )
        return PASSWORD_RESET_GENERIC_MESSAGE

    async def reset_password(self, token: str, new_password: str) -> None:
        """Set a new password using a reset token; the token dies with the old password."""
        payload = decode_capability_token(token, PASSWORD_RESET_TOKEN_TYPE)
        try:
            user_id = UUID(str(payload["sub"]))
        except ValueError as exc:
            raise InvalidOrExpiredTokenException("Invalid or expired token") from exc

        user = await self.repository.get_user_by_id(user_id)
        if user is None or not user.is_active:
            raise InvalidOrExpiredTokenException("Invalid or expired token")
        if payload.get("pwd") != password_fingerprint(user.password_hash):
            raise InvalidOrExpiredTokenException("Invalid or expired token")

        await self.repository.set_password_hash(user, hash_password(new_password))
        await self.repository.revoke_all_refresh_tokens(user.id, utc_now())

    async def get_user_from_access_token(self, token: str) -> User:
        """Resolve user from access token."""
        payload = decode_token(token)
        if payload.get("type") != "access":
            raise UnauthorizedException("Invalid access token")

        subject = payload.get("sub")
        if not subject:
            raise UnauthorizedException("Token subject is missing")

        user = await self.repository.get_user_by_id(UUID(subject))
        if user is None:
            raise UnauthorizedException("User not found")
        if not user.is_active:
            raise UnauthorizedException("User is inactive")

        return user


def build_identity_service(session: AsyncSession) -> IdentityService:
    """Wire identity service and its collaborators on one session."""
    identity_repository = IdentityRepository(session)
    trainers_repository = TrainersRepository(session)
    audit_repository = AuditRepository(session)
    return IdentityService(
        repository=identity_repository,
        trainers_repository=trainers_repository,
        verification_service=VerificationService(
            trainers_repository=trainers_repository,
            identity_repository=identity_repository,
            audit_repository=audit_repository,
        ),
        audit_repository=audit_repository,
    )


async def get_identity_service(session: AsyncSession = Depends(get_db_session)) -> IdentityService:
    """Dependency to provide identity service."""
    return build_identity_service(session)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    service: IdentityService = Depends(get_identity_service),
) -> User:
    """Resolve currently authenticated user from bearer token."""
    return await service.get_user_from_access_token(token)


def require_roles(*roles: RoleEnum):
    """Dependency factory for role-based access."""

    async def _checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role.name not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Operation not permitted for your role",
            )
        return current_user

    return _checker

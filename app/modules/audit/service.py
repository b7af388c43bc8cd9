"""Audit business logic layer."""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.core.enums import RoleEnum
from app.modules.audit.models import AuditLog, OutboxEvent
from app.modules.audit.repository import AuditRepository
from app.modules.identity.models import User
from app.shared.exceptions import UnauthorizedException


class AuditService:
    """Read access to audit logs and the notifications outbox (admin only)."""

    def __init__(self, repository: AuditRepository) -> None:
        self.repository = repository

    @staticmethod
    def _require_admin(actor: User) -> None:
        if actor.role.name != RoleEnum.ADMIN:
            raise UnauthorizedException("Only admin can view audit data")

    async def list_logs(
        self,
        actor: User,
        limit: int,
        offset: int,
        entity_type: str | None = None,
        entity_id: str | None = None,
    ) -> tuple[list[AuditLog], int]:
        """List audit logs, optionally for one entity."""
        self._require_admin(actor)
        return await self.repository.list_audit_logs(
            limit=limit,
            offset=offset,
            entity_type=entity_type,
            entity_id=entity_id,
        )

    async def list_pending_outbox(self, actor: User, limit: int) -> list[OutboxEvent]:
        """List pending outbox events."""
        self._require_admin(actor)
        return await self.repository.list_pending_outbox(limit)

    async def list_dead_letter_outbox(self, actor: User, limit: int, max_retries: int) -> list[OutboxEvent]:
        """List outbox events that exhausted their retries."""
        self._require_admin(actor)
        return await self.repository.list_dead_letter_outbox(limit=limit, max_retries=max_retries)


async def get_audit_service(session: AsyncSession = Depends(get_db_session)) -> AuditService:
    """Dependency provider for audit service."""
    return AuditService(AuditRepository(session))

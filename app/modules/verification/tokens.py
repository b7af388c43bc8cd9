"""Trainer decision links.

A decision link is a signed JWT that lets a human approve or reject one
trainer application without an app session. The ``app`` claim binds the
token to the application cycle it was issued for, so links from an older
cycle stop working once the trainer re-applies.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode
from uuid import UUID

from app.core.config import get_settings
from app.core.enums import VerificationActionEnum
from app.core.security import TRAINER_DECISION_TOKEN_TYPE, create_capability_token, decode_capability_token
from app.shared.exceptions import InvalidOrExpiredTokenException
from app.shared.utils import ensure_utc

settings = get_settings()

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True, slots=True)
class DecisionClaims:
    trainer_id: UUID
    action: VerificationActionEnum
    application_marker: int


def application_marker(applied_at: datetime) -> int:
    """Return a stable integer id for an application cycle (microseconds since epoch)."""
    return (ensure_utc(applied_at) - _EPOCH) // timedelta(microseconds=1)


def issue_decision_link(trainer_id: UUID, action: VerificationActionEnum, applied_at: datetime) -> str:
    """Sign a decision token for one trainer, action and application cycle."""
    return create_capability_token(
        subject=str(trainer_id),
        token_type=TRAINER_DECISION_TOKEN_TYPE,
        expires_delta=timedelta(days=settings.trainer_decision_link_expire_days),
        action=action.value,
        app=application_marker(applied_at),
    )


def build_decision_url(token: str, action: VerificationActionEnum) -> str:
    query = urlencode({"action": action.value})
    base_url = settings.public_base_url.rstrip("/")
    return f"{base_url}{settings.api_prefix}/identity/auth/verify-trainer/{token}?{query}"


def read_decision_token(token: str) -> DecisionClaims:
    """Validate token signature, expiry and shape."""
    payload = decode_capability_token(token, TRAINER_DECISION_TOKEN_TYPE)
    try:
        return DecisionClaims(
            trainer_id=UUID(str(payload["sub"])),
            action=VerificationActionEnum(payload["action"]),
            application_marker=int(payload["app"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidOrExpiredTokenException("Invalid or expired token") from exc

"""Security utilities for password hashing, session JWTs and capability tokens."""

from __future__ import annotations

import hashlib
from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import get_settings
from app.shared.exceptions import InvalidOrExpiredTokenException

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
settings = get_settings()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.api_prefix}/identity/auth/login")

TRAINER_DECISION_TOKEN_TYPE = "trainer_decision"
PASSWORD_RESET_TOKEN_TYPE = "password_reset"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify plain password against hashed one."""
    return pwd_context.verify(plain_password, hashed_password)


def hash_password(password: str) -> str:
    """Hash password using bcrypt."""
    return pwd_context.hash(password)


def _create_token(subject: str, expires_delta: timedelta, token_type: str, **claims: Any) -> str:
    """Create signed JWT token."""
    payload: dict[str, Any] = {
        "sub": subject,
        "type": token_type,
        "exp": datetime.now(UTC) + expires_delta,
    }
    payload.update(claims)
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(subject: str, **claims: Any) -> str:
    """Create access token."""
    expires = timedelta(minutes=settings.access_token_expire_minutes)
    return _create_token(subject=subject, expires_delta=expires, token_type="access", **claims)


def create_refresh_token(subject: str, token_id: str, **claims: Any) -> str:
    """Create refresh token."""
    expires = timedelta(days=settings.refresh_token_expire_days)
    return _create_token(
        subject=subject,
        expires_delta=expires,
        token_type="refresh",
        jti=token_id,
        **claims,
    )


def create_capability_token(
    subject: str,
    token_type: str,
    expires_delta: timedelta,
    **claims: Any,
) -> str:
    """Create a self-contained token whose possession authorizes one action."""
    return _create_token(subject=subject, expires_delta=expires_delta, token_type=token_type, **claims)


def password_fingerprint(password_hash: str) -> str:
    """Short digest of the stored hash; changes whenever the password changes."""
    return hashlib.sha256(password_hash.encode("utf-8")).hexdigest()[:16]


def create_password_reset_token(user_id: str, password_hash: str) -> str:
    """Create reset token that stops working once the password is changed."""
    return create_capability_token(
        subject=user_id,
        token_type=PASSWORD_RESET_TOKEN_TYPE,
        expires_delta=timedelta(minutes=settings.password_reset_expire_minutes),
        pwd=password_fingerprint(password_hash),
    )


def decode_token(token: str) -> dict[str, Any]:
    """Decode and validate JWT token."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc


def decode_capability_token(token: str, expected_type: str) -> dict[str, Any]:
    """Decode capability token, checking signature, expiry and token type."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise InvalidOrExpiredTokenException("Invalid or expired token") from exc

    if payload.get("type") != expected_type or not payload.get("sub"):
        raise InvalidOrExpiredTokenException("Invalid or expired token")
    return payload

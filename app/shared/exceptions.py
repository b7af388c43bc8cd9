"""Custom exception hierarchy and handlers."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    status_code = 400
    code = "app_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationException(AppException):
    """Raised when input shape or range is invalid."""

    code = "validation_error"


class NotFoundException(AppException):
    """Raised when entity is not found."""

    status_code = 404
    code = "not_found"


class ConflictException(AppException):
    """Raised when entity conflicts with current state."""

    status_code = 409
    code = "conflict"


class IllegalTransitionException(ConflictException):
    """Raised when a lifecycle transition is not allowed."""

    code = "illegal_transition"


class DuplicateReviewException(ConflictException):
    """Raised when a student reviews the same session twice."""

    code = "duplicate_review"


class BookingAlreadyScheduledException(ConflictException):
    """Raised when a booking is already bound to a session."""

    code = "booking_already_scheduled"


class AlreadyResolvedException(ConflictException):
    """Raised when a trainer application was already decided."""

    status_code = 400
    code = "already_resolved"


class UnauthorizedException(AppException):
    """Raised when user has no rights for operation."""

    status_code = 403
    code = "forbidden"


class NotAParticipantException(UnauthorizedException):
    """Raised when a student did not attend the session."""

    code = "not_a_participant"


class BusinessRuleException(AppException):
    """Raised when business rule validation fails."""

    code = "business_rule_violation"


class TrainerUnavailableException(BusinessRuleException):
    """Raised when trainer is not verified or not taking bookings."""

    code = "trainer_unavailable"


class BookingNotPaidException(BusinessRuleException):
    """Raised when a session references an unpaid booking."""

    code = "booking_not_paid"


class SessionNotCompletedException(BusinessRuleException):
    """Raised when a review targets a session that is not completed."""

    code = "session_not_completed"


class CooldownNotElapsedException(BusinessRuleException):
    """Raised when a rejected trainer re-applies too early."""

    code = "cooldown_not_elapsed"

    def __init__(self, remaining_seconds: int) -> None:
        self.remaining_seconds = remaining_seconds
        super().__init__(
            f"You can re-apply only after the cooldown period. Try again in {remaining_seconds} second(s).",
            details={"remaining_seconds": remaining_seconds},
        )


class InvalidOrExpiredTokenException(AppException):
    """Raised when a capability token is malformed, forged or expired."""

    code = "invalid_or_expired_token"


class ProviderException(AppException):
    """Raised when the payment provider rejects a request."""

    code = "provider_error"


class ConfigurationException(AppException):
    """Raised when an integration is not configured."""

    status_code = 500
    code = "configuration_error"


class SignatureException(AppException):
    """Raised when webhook signature verification fails."""

    code = "signature_error"


class RateLimitException(AppException):
    """Raised when a client exceeds request quota."""

    status_code = 429
    code = "rate_limited"


def _error_body(code: str, message: str, details: dict[str, Any] | None = None) -> dict:
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return {"error": error}


async def app_exception_handler(_: Request, exc: AppException) -> JSONResponse:
    """Handle custom domain exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.code, exc.message, exc.details),
    )


async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions in unified shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body("http_error", str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_exception_handler(
    _: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Render request validation failures as 400 in unified shape."""
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=_error_body("validation_error", "Request validation failed", {"errors": errors}),
    )


async def unhandled_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(
        status_code=500,
        content=_error_body("internal_error", "Internal server error"),
    )


def register_exception_handlers(app) -> None:
    """Register global exception handlers."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

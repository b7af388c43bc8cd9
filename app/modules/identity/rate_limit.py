"""Per-action request budgets for the identity auth endpoints."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Collection

from fastapi import Request

from app.core.config import get_settings
from app.core.metrics import record_rate_limit_refusal
from app.core.rate_limit import RateLimitRule, get_rate_limiter
from app.shared.exceptions import RateLimitException

logger = logging.getLogger(__name__)

# Action name -> settings field holding its request budget.
_BUDGET_SETTINGS = {
    "register": "auth_rate_limit_register_requests",
    "login": "auth_rate_limit_login_requests",
    "refresh": "auth_rate_limit_refresh_requests",
    "password-reset": "auth_rate_limit_password_reset_requests",
}


def client_ip(request: Request, trusted_proxies: Collection[str]) -> str:
    """Return the caller address, honouring X-Forwarded-For only from a trusted proxy."""
    peer = request.client.host if request.client and request.client.host else "unknown"
    if peer not in trusted_proxies:
        return peer
    forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    return forwarded or peer


def rate_limited(action: str) -> Callable[[Request], Awaitable[None]]:
    """Build a route dependency that spends one request of ``action``'s budget per call."""
    budget_setting = _BUDGET_SETTINGS[action]

    async def dependency(request: Request) -> None:
        settings = get_settings()
        rule = RateLimitRule(
            limit=getattr(settings, budget_setting),
            window_seconds=settings.auth_rate_limit_window_seconds,
        )
        ip = client_ip(request, settings.auth_rate_limit_trusted_proxy_ips)
        decision = await get_rate_limiter().hit(f"identity:{action}:{ip}", rule)
        if decision.allowed:
            return
        record_rate_limit_refusal(action)
        logger.warning("Rate limit hit for %s from %s", action, ip)
        raise RateLimitException(
            f"Too many {action} requests. Try again in {decision.retry_after} second(s).",
            details={"retry_after_seconds": decision.retry_after},
        )

    dependency.__name__ = f"limit_{action.replace('-', '_')}"
    return dependency


limit_register = rate_limited("register")
limit_login = rate_limited("login")
limit_refresh = rate_limited("refresh")
# Forgot and reset share one budget.
limit_password_reset = rate_limited("password-reset")

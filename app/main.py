"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.responses import HTMLResponse
from sqlalchemy import text

from app.core.config import get_settings
from app.core.database import SessionLocal, close_engine
from app.core.metrics import build_metrics_response, instrument_http_request
from app.modules.audit.router import router as audit_router
from app.modules.booking.router import router as booking_router
from app.modules.identity.router import router as identity_router
from app.modules.identity.service import build_identity_service
from app.modules.notifications.router import router as notifications_router
from app.modules.payments.router import router as payments_router
from app.modules.reviews.router import router as reviews_router
from app.modules.sessions.router import router as sessions_router
from app.modules.trainers.router import router as trainers_router
from app.modules.verification.router import router as verification_router
from app.shared.exceptions import register_exception_handlers
from app.shared.utils import utc_now

settings = get_settings()
logger = logging.getLogger(__name__)


_API_AREAS = (
    ("identity", "Accounts, sign-in and password reset"),
    ("trainers", "Trainer directory and profiles"),
    ("payments", "Payment intents and provider webhooks"),
    ("booking", "Paid bookings"),
    ("sessions", "Scheduled training sessions"),
    ("reviews", "Session reviews and trainer ratings"),
)


def _landing_page_html() -> str:
    """Build minimal landing page for root path."""
    areas = "\n".join(
        f"        <li><code>{settings.api_prefix}/{name}</code> {description}</li>" for name, description in _API_AREAS
    )
    return f"""<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <title>{settings.app_name} API</title>
    <style>
      body {{ font-family: system-ui, sans-serif; max-width: 720px; margin: 40px auto; color: #1d2b36; }}
      nav a {{ margin-right: 16px; }}
    </style>
  </head>
  <body>
    <h1>{settings.app_name} API</h1>
    <p>Trainer marketplace backend is running.</p>
    <nav>
      <a href="/docs">API docs</a>
      <a href="/health">Health</a>
      <a href="/ready">Ready</a>
      <a href="/metrics">Metrics</a>
    </nav>
    <ul>
{areas}
    </ul>
  </body>
</html>
"""


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Application startup and shutdown hooks."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logger.info("Starting %s", settings.app_name)

    async with SessionLocal() as session:
        try:
            service = build_identity_service(session)
            await service.ensure_default_roles()
            await session.commit()
            logger.info("Default roles ensured")
        except Exception:
            await session.rollback()
            logger.exception("Failed during startup initialization")
            raise

    yield

    logger.info("Shutting down %s", settings.app_name)
    await close_engine()


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan,
)
app.middleware("http")(instrument_http_request)

register_exception_handlers(app)

app.include_router(identity_router, prefix=settings.api_prefix)
app.include_router(verification_router, prefix=settings.api_prefix)
app.include_router(trainers_router, prefix=settings.api_prefix)
app.include_router(payments_router, prefix=settings.api_prefix)
app.include_router(booking_router, prefix=settings.api_prefix)
app.include_router(sessions_router, prefix=settings.api_prefix)
app.include_router(reviews_router, prefix=settings.api_prefix)
app.include_router(notifications_router, prefix=settings.api_prefix)
app.include_router(audit_router, prefix=settings.api_prefix)


@app.get("/", include_in_schema=False, response_class=HTMLResponse)
async def landing_page() -> HTMLResponse:
    """Root page with quick navigation links."""
    return HTMLResponse(content=_landing_page_html())


@app.get("/health")
async def healthcheck() -> dict[str, str]:
    """Liveness check; never touches the database."""
    return {"status": "ok"}


async def _is_database_ready() -> bool:
    """Return True if DB accepts basic queries."""
    try:
        async with SessionLocal() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("Database readiness check failed")
        return False


def _payments_mode() -> str:
    if settings.stripe_configured:
        return "stripe"
    return "demo" if settings.payments_demo_enabled else "disabled"


@app.get("/ready")
async def readiness_check() -> dict[str, str]:
    """Readiness check: 503 until the database answers.

    ``payments`` reports how new bookings can be paid; it does not gate
    readiness.
    """
    if not await _is_database_ready():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database is not ready",
        )
    return {
        "status": "ready",
        "database": "ok",
        "payments": _payments_mode(),
        "timestamp": utc_now().isoformat(),
    }


@app.get("/metrics", include_in_schema=False)
async def metrics_endpoint(_: Request) -> Response:
    """Prometheus metrics endpoint."""
    return build_metrics_response()

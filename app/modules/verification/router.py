"""Trainer verification link endpoint."""

from __future__ import annotations

import logging
from html import escape

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse

from app.core.config import get_settings
from app.core.enums import VerificationActionEnum
from app.modules.verification.service import VerificationService, get_verification_service
from app.shared.exceptions import AppException

router = APIRouter(prefix="/identity", tags=["verification"])
logger = logging.getLogger(__name__)
settings = get_settings()


def _decision_page_html(title: str, message: str, accent: str) -> str:
    """Build standalone confirmation page shown after opening a decision link."""
    return f"""
<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>{escape(title)} | {escape(settings.app_name)}</title>
    <style>
      body {{
        margin: 0;
        font-family: "Segoe UI", Arial, sans-serif;
        background: #f4f7fb;
        color: #1c2a34;
      }}
      .card {{
        max-width: 560px;
        margin: 72px auto;
        padding: 28px;
        background: #ffffff;
        border-radius: 16px;
        border-top: 6px solid {accent};
        box-shadow: 0 10px 28px rgba(20, 31, 46, 0.08);
      }}
      h1 {{
        margin: 0 0 12px;
        font-size: 1.6rem;
      }}
      p {{
        margin: 0;
        line-height: 1.5;
      }}
    </style>
  </head>
  <body>
    <main class="card">
      <h1>{escape(title)}</h1>
      <p>{escape(message)}</p>
    </main>
  </body>
</html>
"""


@router.get("/auth/verify-trainer/{token}", response_class=HTMLResponse, include_in_schema=False)
async def verify_trainer(
    token: str,
    action: VerificationActionEnum = Query(...),
    service: VerificationService = Depends(get_verification_service),
) -> HTMLResponse:
    """Approve or reject a trainer application from an emailed link."""
    try:
        _, user = await service.resolve(token, action)
    except AppException as exc:
        logger.info("Trainer decision link refused: %s", exc.code)
        return HTMLResponse(
            content=_decision_page_html("Link cannot be used", exc.message, "#c0392b"),
            status_code=exc.status_code,
        )

    if action == VerificationActionEnum.APPROVE:
        title = "Trainer approved"
        message = f"{user.name} ({user.email}) is now a verified trainer."
        accent = "#2e8b57"
    else:
        title = "Trainer rejected"
        message = f"{user.name} ({user.email}) was rejected and notified by email."
        accent = "#d35400"
    return HTMLResponse(content=_decision_page_html(title, message, accent))

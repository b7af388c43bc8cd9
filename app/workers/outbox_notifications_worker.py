"""Deliver pending outbox events as notifications.

Run once (cron style) or with ``--loop`` to keep polling::

    python -m app.workers.outbox_notifications_worker --loop --poll-seconds 5

Batch size and retry/backoff limits come from the ``OUTBOX_WORKER_*`` settings.
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from app.core.config import Settings, get_settings
from app.core.database import SessionLocal
from app.modules.audit.repository import AuditRepository
from app.modules.identity.repository import IdentityRepository
from app.modules.notifications.email import get_email_sender
from app.modules.notifications.outbox_worker import NotificationsOutboxWorker
from app.modules.notifications.repository import NotificationsRepository

logger = logging.getLogger(__name__)


async def run_cycle(settings: Settings) -> dict[str, int]:
    """Process one batch in a single transaction."""
    async with SessionLocal() as session:
        worker = NotificationsOutboxWorker(
            audit_repository=AuditRepository(session),
            notifications_repository=NotificationsRepository(session),
            identity_repository=IdentityRepository(session),
            email_sender=get_email_sender(),
            batch_size=settings.outbox_worker_batch_size,
            max_retries=settings.outbox_worker_max_retries,
            base_backoff_seconds=settings.outbox_worker_base_backoff_seconds,
            max_backoff_seconds=settings.outbox_worker_max_backoff_seconds,
        )
        stats = await worker.run_once()
        await session.commit()
        return stats


async def poll(settings: Settings, poll_seconds: float, *, max_cycles: int | None = None) -> int:
    """Run cycles until ``max_cycles`` (forever when None); return how many failed."""
    failures = 0
    cycle = 0
    while max_cycles is None or cycle < max_cycles:
        cycle += 1
        try:
            stats = await run_cycle(settings)
        except Exception:
            failures += 1
            logger.exception("Outbox cycle %s failed", cycle)
        else:
            # Idle cycles stay quiet.
            if any(stats.values()):
                logger.info("Outbox cycle %s: %s", cycle, stats)
        if max_cycles is None or cycle < max_cycles:
            await asyncio.sleep(poll_seconds)
    return failures


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Deliver pending TrainerHub outbox notifications.")
    parser.add_argument("--loop", action="store_true", help="Keep polling instead of running one batch.")
    parser.add_argument(
        "--poll-seconds",
        type=float,
        default=None,
        help="Delay between batches in loop mode (default: OUTBOX_WORKER_POLL_SECONDS).",
    )
    parser.add_argument("--max-cycles", type=int, default=None, help="Stop looping after this many batches.")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    if not args.loop:
        stats = asyncio.run(run_cycle(settings))
        logger.info("Outbox batch done: %s", stats)
        return 0

    poll_seconds = args.poll_seconds or settings.outbox_worker_poll_seconds
    failures = asyncio.run(poll(settings, poll_seconds, max_cycles=args.max_cycles))
    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())

"""Background scheduler for the duplicate-assignment sweep."""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI

from ..core.config import get_settings
from ..core.database import SessionLocal
from ..models import ReconciliationTrigger
from ..services.reconciliation_service import reconcile_duplicate_assignments

logger = logging.getLogger(__name__)

_scheduler = AsyncIOScheduler(timezone="UTC")


async def _execute_duplicate_sweep() -> None:
    session = SessionLocal()
    try:
        summary = reconcile_duplicate_assignments(session, trigger=ReconciliationTrigger.SCHEDULED)
        logger.info("scheduled duplicate sweep completed: %s", summary)
    except Exception:  # pragma: no cover - safeguard for background job
        session.rollback()
        logger.exception("scheduled duplicate sweep failed")
        raise
    finally:
        session.close()


def register_scheduler(app: FastAPI) -> None:
    """Attach APScheduler lifecycle hooks to the FastAPI app.

    Nothing is scheduled unless ``reconcile_schedule_enabled`` is set.
    """

    settings = get_settings()
    if not settings.reconcile_schedule_enabled:
        return

    if _scheduler.get_job("duplicate_sweep") is None:
        _scheduler.add_job(
            _execute_duplicate_sweep,
            "interval",
            minutes=settings.reconcile_interval_minutes,
            id="duplicate_sweep",
            max_instances=1,
            coalesce=True,
        )

    @app.on_event("startup")
    async def start_scheduler() -> None:
        if not _scheduler.running:
            _scheduler.start()
            logger.info("duplicate sweep scheduled every %s minutes", settings.reconcile_interval_minutes)

    @app.on_event("shutdown")
    async def shutdown_scheduler() -> None:
        if _scheduler.running:
            _scheduler.shutdown(wait=False)
            logger.info("duplicate sweep scheduler stopped")


def run_sweep_once() -> dict[str, int]:
    """Run the duplicate sweep synchronously, outside the scheduler."""

    session = SessionLocal()
    try:
        return reconcile_duplicate_assignments(session)
    finally:
        session.close()

import asyncio
import logging
from typing import Optional

from landverify.config import settings
from landverify.core.clock import system_clock
from landverify.database import SessionLocal
from landverify.services.notification_service import NotificationSink, dispatch_pending
from landverify.services.sla_service import sweep_overdue

log = logging.getLogger("scheduler")

_scheduler_task: Optional[asyncio.Task] = None


async def run_maintenance_once() -> dict:
    """One SLA sweep followed by one outbox dispatch, each in its own transaction."""
    summary = {}
    async with SessionLocal() as db:
        try:
            summary["sla"] = await sweep_overdue(db, system_clock)
            await db.commit()
        except Exception as e:
            await db.rollback()
            log.exception(f"[SCHEDULER] SLA sweep failed: {e}")
            summary["sla"] = {"error": str(e)}

    async with SessionLocal() as db:
        try:
            summary["notifications"] = await dispatch_pending(db, NotificationSink(), system_clock.now())
            await db.commit()
        except Exception as e:
            await db.rollback()
            log.exception(f"[SCHEDULER] Notification dispatch failed: {e}")
            summary["notifications"] = {"error": str(e)}

    log.info(f"[SCHEDULER] Maintenance run complete: {summary}")
    return summary


async def _scheduler_loop():
    interval = settings.SLA_SWEEP_INTERVAL_SECONDS
    log.info(f"[SCHEDULER] Starting maintenance scheduler: interval={interval}s")

    while True:
        try:
            await run_maintenance_once()
        except asyncio.CancelledError:
            log.info("[SCHEDULER] Scheduler cancelled, shutting down")
            break
        except Exception as e:
            log.exception(f"[SCHEDULER] Unexpected error: {e}")

        try:
            await asyncio.sleep(interval)
        except asyncio.CancelledError:
            log.info("[SCHEDULER] Scheduler cancelled, shutting down")
            break


def start_scheduler():
    global _scheduler_task

    if not settings.SCHEDULER_ENABLED:
        log.info("[SCHEDULER] Maintenance scheduler is disabled (SCHEDULER_ENABLED=false)")
        return

    if _scheduler_task is not None:
        log.warning("[SCHEDULER] Scheduler already running")
        return

    _scheduler_task = asyncio.create_task(_scheduler_loop())
    log.info("[SCHEDULER] Maintenance scheduler started")


def stop_scheduler():
    global _scheduler_task

    if _scheduler_task is not None:
        _scheduler_task.cancel()
        _scheduler_task = None
        log.info("[SCHEDULER] Maintenance scheduler stopped")

"""APScheduler job definitions and scheduler management.

Initializes a BackgroundScheduler with an IntervalTrigger for the periodic
self-scan and provides start/shutdown/status helpers for the FastAPI
lifespan.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from candidate_dedup.core.config import settings
from candidate_dedup.services.self_scan import run_self_scan

logger = logging.getLogger(__name__)

# Module-level scheduler instance (singleton)
scheduler = BackgroundScheduler()


def _self_scan_job() -> None:
    """Wrapper that APScheduler calls on each interval tick."""
    run_self_scan(trigger="scheduler")


def start_scheduler() -> None:
    """Add the self-scan job and start the background scheduler.

    Does nothing when ``SELF_SCAN_ENABLED`` is off.
    """
    if not settings.SELF_SCAN_ENABLED:
        logger.info("scheduler_disabled")
        return

    scheduler.add_job(
        _self_scan_job,
        IntervalTrigger(hours=settings.SELF_SCAN_INTERVAL_HOURS),
        id="self_scan",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        "scheduler_started",
        extra={
            "interval_hours": settings.SELF_SCAN_INTERVAL_HOURS,
        },
    )


def shutdown_scheduler() -> None:
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("scheduler_stopped")


def is_scheduler_running() -> bool:
    """Check if the scheduler is currently running."""
    return scheduler.running

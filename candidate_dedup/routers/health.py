"""Health check endpoint.

Returns service status including database connectivity, scheduler state and
whether a self-scan is in progress.
"""

import logging
from typing import Any

from fastapi import APIRouter
from starlette.responses import JSONResponse

from candidate_dedup.db.supabase import ping
from candidate_dedup.scheduler.jobs import is_scheduler_running
from candidate_dedup.scheduler.lock import is_scan_running

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check() -> Any:
    """Return health status including a real Supabase connectivity test.

    Returns 200 OK when healthy, 503 when the database is down.
    """
    db_status = "disconnected"

    try:
        if ping():
            db_status = "connected"
    except Exception:
        logger.warning("Health check: Supabase connection failed", exc_info=True)

    payload: dict[str, Any] = {
        "status": "ok" if db_status == "connected" else "degraded",
        "database": db_status,
        "scheduler": "running" if is_scheduler_running() else "stopped",
        "self_scan_running": is_scan_running(),
    }

    if db_status != "connected":
        return JSONResponse(status_code=503, content=payload)

    return payload

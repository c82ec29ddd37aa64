"""Duplicate review queue and self-scan trigger endpoints.

GET / -- flagged records grouped by primary.
POST /scan -- trigger a self-scan (409 if one is already running).
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from candidate_dedup.models.enums import ReviewStatus
from candidate_dedup.models.review import DuplicateGroupsResponse
from candidate_dedup.scheduler.lock import get_current_scan
from candidate_dedup.services.review_queue import list_duplicate_groups
from candidate_dedup.services.self_scan import run_self_scan

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=DuplicateGroupsResponse)
async def list_duplicates(
    status: ReviewStatus = Query(ReviewStatus.pending),
) -> DuplicateGroupsResponse:
    """List duplicate groups filtered by review status."""
    return list_duplicate_groups(status)


@router.post("/scan", status_code=202)
async def trigger_self_scan(dry_run: bool = False) -> dict[str, Any]:
    """Trigger a self-scan of the whole population.

    Returns 202 once the scan has been started in a background thread, 409
    if a scan is already in progress.  With ``dry_run`` the findings are
    only logged.
    """
    current = get_current_scan()
    if current is not None:
        raise HTTPException(
            status_code=409,
            detail={
                "message": "Self-scan already in progress",
                "trigger": current["trigger"],
                "started_at": current["started_at"].isoformat(),
            },
            headers={"X-Current-Run-Id": str(current["run_id"])},
        )

    def _run_scan() -> None:
        run_self_scan(trigger="manual", persist=not dry_run)

    thread = threading.Thread(target=_run_scan, daemon=True)
    thread.start()

    return {
        "status": "started",
        "dry_run": dry_run,
        "message": "Self-scan initiated",
    }

"""Periodic self-scan of the active population.

Runs the match engine over the population in canonical order and flags each
later duplicate as subordinate to its earlier primary, pending review.

Phases:
1. Fetch the population (one snapshot)
2. Score it with ``self_scan``
3. Persist the findings (skipped for dry runs)
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from candidate_dedup.core.config import settings
from candidate_dedup.core.exceptions import PersistenceFailure
from candidate_dedup.db.repository import CandidateRepository
from candidate_dedup.models.dedup import DedupThresholds, SelfScanFinding
from candidate_dedup.scheduler.lock import acquire_scan_lock, release_scan_lock
from candidate_dedup.services.matching import self_scan
from candidate_dedup.services.population import fetch_population

logger = logging.getLogger(__name__)

# A reviewer may have dismissed or linked the record since the fetch
_UNSETTLED_GUARDS = {"is_duplicate": False, "dedup_reviewed": False, "duplicate_of": None}


def _flag_findings(
    repository: CandidateRepository,
    findings: list[SelfScanFinding],
    run_id: str,
) -> tuple[int, int]:
    """Write the findings; returns (flagged, failed)."""
    flagged = 0
    failed = 0
    for finding in findings:
        update = {
            "is_duplicate": True,
            "duplicate_of": finding.primary_id,
            "dedup_reviewed": False,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            written = repository.update(
                finding.secondary_id, update, guards=_UNSETTLED_GUARDS
            )
        except PersistenceFailure as exc:
            failed += 1
            logger.error(
                "self_scan_error",
                extra={
                    "run_id": run_id,
                    "phase": "persist",
                    "secondary_id": finding.secondary_id,
                    "error": str(exc),
                },
            )
            continue
        if written:
            flagged += 1
        else:
            logger.info(
                "self_scan_finding_stale",
                extra={"run_id": run_id, "secondary_id": finding.secondary_id},
            )
    return flagged, failed


def run_self_scan(
    trigger: str = "scheduler",
    persist: bool = True,
    repo: CandidateRepository | None = None,
    thresholds: DedupThresholds | None = None,
) -> dict[str, Any]:
    """Execute one self-scan run.

    Parameters
    ----------
    trigger:
        Either "scheduler" or "manual"; logged for observability.
    persist:
        When False the findings are reported but nothing is written.

    Returns
    -------
    Dict with the run summary, or a skip message when a scan is already
    in progress.
    """
    run_id = uuid4()

    if not acquire_scan_lock(run_id, trigger):
        logger.warning(
            "Self-scan already running, skipping trigger",
            extra={"run_id": str(run_id), "trigger": trigger},
        )
        return {"status": "skipped", "reason": "self_scan_already_running"}

    repository = repo or CandidateRepository()
    t = thresholds or settings.dedup_thresholds()
    start_time = time.time()

    logger.info(
        "self_scan_start",
        extra={"run_id": str(run_id), "trigger": trigger, "persist": persist},
    )

    try:
        # ---- PHASE 1: Fetch population ----
        phase_start = time.time()
        try:
            population = fetch_population(repository)
        except PersistenceFailure as exc:
            logger.error(
                "self_scan_failed",
                extra={
                    "run_id": str(run_id),
                    "phase": "fetch",
                    "error": str(exc),
                    "status": "failed",
                },
            )
            raise

        logger.info(
            "phase_complete",
            extra={
                "phase": "fetch",
                "count": len(population),
                "duration_ms": int((time.time() - phase_start) * 1000),
            },
        )

        # ---- PHASE 2: Score ----
        phase_start = time.time()
        findings = self_scan(population, t)

        logger.info(
            "phase_complete",
            extra={
                "phase": "scan",
                "count": len(findings),
                "duration_ms": int((time.time() - phase_start) * 1000),
            },
        )

        # ---- PHASE 3: Persist ----
        flagged = 0
        failed = 0
        if persist and findings:
            phase_start = time.time()
            flagged, failed = _flag_findings(repository, findings, str(run_id))

            logger.info(
                "phase_complete",
                extra={
                    "phase": "persist",
                    "count": flagged,
                    "duration_ms": int((time.time() - phase_start) * 1000),
                },
            )

        duration = time.time() - start_time
        status = "partial" if failed else "success"

        logger.info(
            "self_scan_complete",
            extra={
                "run_id": str(run_id),
                "population_size": len(population),
                "findings": len(findings),
                "flagged": flagged,
                "failed": failed,
                "duration_seconds": round(duration, 2),
                "status": status,
            },
        )

        return {
            "run_id": str(run_id),
            "status": status,
            "population_size": len(population),
            "findings": len(findings),
            "flagged": flagged,
            "failed": failed,
            "duration_seconds": round(duration, 2),
        }
    finally:
        release_scan_lock()

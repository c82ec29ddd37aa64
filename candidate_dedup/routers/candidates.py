"""Candidate duplicate endpoints.

POST /check-duplicate -- score one probe against the live population.
POST /check-duplicate-batch -- score many probes against one snapshot.
POST /{primary_id}/resolve-duplicate -- merge, link or dismiss a pair.

Probe bodies are taken as raw JSON objects so that field errors come back
as ``VALIDATION_FAILED`` from the service (single check) or as silently
dropped entries (batch).
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body
from pydantic import BaseModel

from candidate_dedup.models.dedup import BatchCheckResult, DuplicateCheckResult
from candidate_dedup.models.resolution import ResolutionResult, ResolveRequest
from candidate_dedup.services.checks import check_batch, check_candidate
from candidate_dedup.services.resolution import resolve_duplicate

logger = logging.getLogger(__name__)

router = APIRouter()


class BatchCheckRequest(BaseModel):
    """Body of ``POST /check-duplicate-batch``."""
    candidates: list[dict[str, Any]]


@router.post("/check-duplicate", response_model=DuplicateCheckResult)
async def check_duplicate(payload: dict[str, Any] = Body(...)) -> DuplicateCheckResult:
    """Check a candidate for duplicates before it is created."""
    return check_candidate(payload)


@router.post("/check-duplicate-batch", response_model=BatchCheckResult)
async def check_duplicate_batch(payload: BatchCheckRequest) -> BatchCheckResult:
    """Check up to ``DEDUP_BATCH_MAX_PROBES`` candidates in one call.

    Entries without a valid DNI, or repeating one seen earlier in the
    batch, are dropped and counted in ``dropped``.
    """
    return check_batch(payload.candidates)


@router.post("/{primary_id}/resolve-duplicate", response_model=ResolutionResult)
async def resolve(primary_id: UUID, payload: ResolveRequest) -> ResolutionResult:
    """Resolve a duplicate pair; ``primary_id`` is the record that survives."""
    return resolve_duplicate(
        primary_id=str(primary_id),
        secondary_id=str(payload.duplicate_candidate_id),
        action=payload.action,
        note=payload.notes,
        reviewer_id=str(payload.reviewer_id) if payload.reviewer_id else None,
    )

"""Duplicate resolution: merge, link or dismiss a (primary, secondary) pair.

- merge: the primary absorbs the secondary's data and the secondary is
  demoted (``is_duplicate=true``, ``status=inactive``).
- link: the secondary points at the primary (``duplicate_of``) but keeps its
  ``is_duplicate`` flag, so it stays in the active pools.
- dismiss: the secondary's duplicate flags are cleared as a false positive.

Both records are re-read right before any write.  A merge writes the primary
first and then the secondary guarded on ``is_duplicate=false``; when the
second write does not land, the primary is restored from its pre-image
(compensating rollback) before the error is raised.  Audit writes are
best-effort.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from candidate_dedup.core.constants import (
    AUDIT_ACTION_CATEGORY,
    AUDIT_ENTITY_TYPE,
    MERGE_FILL_FIELDS,
    MERGE_RECENCY_FIELDS,
    MERGED_STATUS,
    NOTES_DELIMITER,
)
from candidate_dedup.core.exceptions import (
    Conflict,
    DuplicateChainError,
    InvalidActionError,
    NotFound,
    PartialUpdateFailure,
    PersistenceFailure,
    ValidationFailure,
)
from candidate_dedup.db.repository import CandidateRepository
from candidate_dedup.models.candidate import CandidateRecord
from candidate_dedup.models.enums import ActorType, ResolutionAction
from candidate_dedup.models.resolution import (
    AuditLogCreate,
    CandidateSummary,
    ResolutionResult,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Field merge policy
# ---------------------------------------------------------------------------

def join_notes(*parts: str | None) -> str | None:
    """Join the non-blank note parts with the visible delimiter."""
    kept = [p for p in parts if p and p.strip()]
    return NOTES_DELIMITER.join(kept) if kept else None


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _latest(a: datetime | None, b: datetime | None) -> datetime | None:
    if a is None or b is None:
        return a or b
    return a if _as_utc(a) >= _as_utc(b) else b


def _jsonable(values: dict[str, Any]) -> dict[str, Any]:
    return {
        k: v.isoformat() if isinstance(v, datetime) else v
        for k, v in values.items()
    }


def merge_fields(
    primary: CandidateRecord,
    secondary: CandidateRecord,
    note: str | None = None,
) -> dict[str, Any]:
    """Compute the primary's merged values (JSON-ready).

    The primary wins every fill field it has a value for; notes are
    concatenated, tags unioned in order, hires summed, and the recency
    timestamps take the most recent value present.
    """
    merged: dict[str, Any] = {}
    for field in MERGE_FILL_FIELDS:
        merged[field] = getattr(primary, field) or getattr(secondary, field)
    merged["notes"] = join_notes(primary.notes, secondary.notes, note)
    merged["tags"] = list(dict.fromkeys([*primary.tags, *secondary.tags]))
    merged["times_hired"] = (primary.times_hired or 0) + (secondary.times_hired or 0)
    for field in MERGE_RECENCY_FIELDS:
        merged[field] = _latest(getattr(primary, field), getattr(secondary, field))
    return _jsonable(merged)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _review_stamp(reviewer_id: str | None, now: str) -> dict[str, Any]:
    return {
        "dedup_reviewed": True,
        "dedup_reviewed_at": now,
        "dedup_reviewed_by": reviewer_id,
    }


def _summary(record: CandidateRecord) -> CandidateSummary:
    return CandidateSummary(id=record.id, full_name=record.full_name, phone=record.phone)


def _load(repository: CandidateRepository, candidate_id: str, role: str) -> CandidateRecord:
    record = repository.get_live(candidate_id)
    if record is None:
        raise NotFound(
            f"{role.capitalize()} candidate not found",
            {"candidate_id": candidate_id, "role": role},
        )
    return record


def _write_audit(repository: CandidateRepository, entry: AuditLogCreate) -> None:
    try:
        repository.insert_audit(entry)
    except PersistenceFailure as exc:
        logger.warning(
            "audit_log_write_failed",
            extra={
                "action": entry.action,
                "entity_id": entry.entity_id,
                "error_message": str(exc),
            },
        )


def _audit_entry(
    action: ResolutionAction,
    entity_id: str,
    reviewer_id: str | None,
    details: dict[str, Any],
    previous_values: dict[str, Any] | None = None,
    new_values: dict[str, Any] | None = None,
) -> AuditLogCreate:
    return AuditLogCreate(
        actor_type=ActorType.user if reviewer_id else ActorType.system,
        actor_id=reviewer_id,
        action=action.value,
        action_category=AUDIT_ACTION_CATEGORY,
        entity_type=AUDIT_ENTITY_TYPE,
        entity_id=entity_id,
        details=details,
        previous_values=previous_values,
        new_values=new_values,
    )


def _is_pending_flag(primary: CandidateRecord, secondary: CandidateRecord) -> bool:
    """True for an unreviewed self-scan flag that points at *primary*."""
    return (
        secondary.is_duplicate
        and secondary.duplicate_of == primary.id
        and not secondary.dedup_reviewed
    )


def _reject_cycle(primary: CandidateRecord, secondary: CandidateRecord) -> None:
    if primary.duplicate_of == secondary.id:
        raise DuplicateChainError(
            "Primary already points at the secondary; resolving would create a cycle",
            {"primary_id": primary.id, "secondary_id": secondary.id},
        )


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

def _restore_primary(
    repository: CandidateRepository,
    primary: CandidateRecord,
    changed_fields: list[str],
) -> bool:
    """Write the primary's pre-merge values back; False when that fails too."""
    before = primary.model_dump(mode="json")
    restore = {field: before.get(field) for field in changed_fields}
    restore["updated_at"] = before.get("updated_at")
    try:
        repository.update(primary.id, restore)
    except PersistenceFailure as exc:
        logger.error(
            "merge_rollback_failed",
            extra={"primary_id": primary.id, "error_message": str(exc)},
        )
        return False
    logger.warning("merge_rolled_back", extra={"primary_id": primary.id})
    return True


def _merge(
    repository: CandidateRepository,
    primary: CandidateRecord,
    secondary: CandidateRecord,
    note: str | None,
    reviewer_id: str | None,
) -> ResolutionResult:
    pending_flag = _is_pending_flag(primary, secondary)
    if secondary.is_duplicate and not pending_flag:
        raise Conflict(
            "Secondary candidate is already marked as a duplicate",
            {"secondary_id": secondary.id, "duplicate_of": secondary.duplicate_of},
        )
    if primary.is_duplicate:
        raise Conflict(
            "Primary candidate is itself marked as a duplicate",
            {"primary_id": primary.id, "duplicate_of": primary.duplicate_of},
        )
    _reject_cycle(primary, secondary)

    now = _now_iso()
    merged = merge_fields(primary, secondary, note)

    # A failure here propagates before the secondary is touched
    repository.update(primary.id, {**merged, "updated_at": now})

    secondary_update = {
        "is_duplicate": True,
        "duplicate_of": primary.id,
        **_review_stamp(reviewer_id, now),
        "status": MERGED_STATUS,
        "notes": join_notes(
            secondary.notes,
            f"Merged into {primary.full_name} ({primary.id})",
        ),
        "updated_at": now,
    }
    if pending_flag:
        guards = {"is_duplicate": True, "duplicate_of": primary.id, "dedup_reviewed": False}
    else:
        guards = {"is_duplicate": False}
    try:
        written = repository.update(secondary.id, secondary_update, guards=guards)
    except PersistenceFailure as exc:
        rolled_back = _restore_primary(repository, primary, list(merged))
        raise PartialUpdateFailure(
            "Primary was updated but marking the secondary failed",
            rolled_back=rolled_back,
            details={"primary_id": primary.id, "secondary_id": secondary.id},
        ) from exc

    if not written:
        rolled_back = _restore_primary(repository, primary, list(merged))
        if not rolled_back:
            raise PartialUpdateFailure(
                "Secondary changed during merge and the primary could not be restored",
                rolled_back=False,
                details={"primary_id": primary.id, "secondary_id": secondary.id},
            )
        raise Conflict(
            "Secondary candidate was resolved by another operation",
            {"secondary_id": secondary.id},
        )

    _write_audit(
        repository,
        _audit_entry(
            ResolutionAction.merge,
            entity_id=primary.id,
            reviewer_id=reviewer_id,
            details={
                "primary_id": primary.id,
                "secondary_id": secondary.id,
                "merged_fields": sorted(merged),
                "note": note,
            },
            previous_values={
                "primary": primary.model_dump(mode="json"),
                "secondary": secondary.model_dump(mode="json"),
            },
            new_values={"primary": merged, "secondary": secondary_update},
        ),
    )

    return ResolutionResult(
        action=ResolutionAction.merge.value,
        message=f"Candidates merged. {primary.full_name} is now the primary record.",
        primary=_summary(primary),
        secondary=_summary(secondary),
        merged_fields=merged,
    )


def _link(
    repository: CandidateRepository,
    primary: CandidateRecord,
    secondary: CandidateRecord,
    note: str | None,
    reviewer_id: str | None,
) -> ResolutionResult:
    if primary.is_duplicate:
        raise Conflict(
            "Primary candidate is itself marked as a duplicate",
            {"primary_id": primary.id, "duplicate_of": primary.duplicate_of},
        )
    _reject_cycle(primary, secondary)

    now = _now_iso()
    update = {
        "duplicate_of": primary.id,
        **_review_stamp(reviewer_id, now),
        "notes": join_notes(
            secondary.notes,
            note,
            f"Linked as related to {primary.full_name} ({primary.id})",
        ),
        "updated_at": now,
    }
    repository.update(secondary.id, update)

    _write_audit(
        repository,
        _audit_entry(
            ResolutionAction.link,
            entity_id=secondary.id,
            reviewer_id=reviewer_id,
            details={"primary_id": primary.id, "secondary_id": secondary.id, "note": note},
            previous_values={"duplicate_of": secondary.duplicate_of, "notes": secondary.notes},
            new_values=update,
        ),
    )

    return ResolutionResult(
        action=ResolutionAction.link.value,
        message="Candidates linked as related records.",
        primary=_summary(primary),
        secondary=_summary(secondary),
    )


def _dismiss(
    repository: CandidateRepository,
    primary: CandidateRecord,
    secondary: CandidateRecord,
    note: str | None,
    reviewer_id: str | None,
) -> ResolutionResult:
    now = _now_iso()
    update = {
        "is_duplicate": False,
        "duplicate_of": None,
        **_review_stamp(reviewer_id, now),
        "notes": join_notes(
            secondary.notes,
            note,
            f"False positive dismissed: not a duplicate of {primary.id}",
        ),
        "updated_at": now,
    }
    repository.update(secondary.id, update)

    _write_audit(
        repository,
        _audit_entry(
            ResolutionAction.dismiss,
            entity_id=secondary.id,
            reviewer_id=reviewer_id,
            details={"primary_id": primary.id, "secondary_id": secondary.id, "note": note},
            previous_values={
                "is_duplicate": secondary.is_duplicate,
                "duplicate_of": secondary.duplicate_of,
                "notes": secondary.notes,
            },
            new_values=update,
        ),
    )

    return ResolutionResult(
        action=ResolutionAction.dismiss.value,
        message="False positive dismissed. The candidates are not related.",
        primary=_summary(primary),
        secondary=_summary(secondary),
    )


_Handler = Callable[
    [CandidateRepository, CandidateRecord, CandidateRecord, str | None, str | None],
    ResolutionResult,
]

_HANDLERS: dict[ResolutionAction, _Handler] = {
    ResolutionAction.merge: _merge,
    ResolutionAction.link: _link,
    ResolutionAction.dismiss: _dismiss,
}


def resolve_duplicate(
    primary_id: str,
    secondary_id: str,
    action: str | ResolutionAction,
    note: str | None = None,
    reviewer_id: str | None = None,
    repo: CandidateRepository | None = None,
) -> ResolutionResult:
    """Apply *action* to the (primary, secondary) pair.

    Raises ``InvalidActionError`` / ``ValidationFailure`` for bad input,
    ``NotFound`` when either record is missing or soft-deleted, ``Conflict``
    when the dedup state no longer allows the action, ``PartialUpdateFailure``
    when a merge could only be half applied, and ``PersistenceFailure`` for
    other storage errors.
    """
    try:
        parsed = ResolutionAction(action)
    except ValueError:
        raise InvalidActionError(
            f"Unknown resolution action: {action!r}",
            {"allowed": [a.value for a in ResolutionAction]},
        ) from None

    primary_id, secondary_id = str(primary_id), str(secondary_id)
    if primary_id == secondary_id:
        raise ValidationFailure(
            "A candidate cannot be resolved against itself",
            {"candidate_id": primary_id},
        )
    reviewer = str(reviewer_id) if reviewer_id else None

    repository = repo or CandidateRepository()
    primary = _load(repository, primary_id, "primary")
    secondary = _load(repository, secondary_id, "secondary")

    result = _HANDLERS[parsed](repository, primary, secondary, note, reviewer)

    logger.info(
        "resolution_completed",
        extra={
            "action": parsed.value,
            "primary_id": primary_id,
            "secondary_id": secondary_id,
            "reviewer_id": reviewer,
        },
    )
    return result

"""Duplicate review queue.

Groups every flagged record (``is_duplicate=true``) under the primary its
``duplicate_of`` points to so a reviewer can resolve each group at once.
"""

from __future__ import annotations

import logging

from candidate_dedup.core.constants import MATCH_REASON_CONFIDENCE
from candidate_dedup.db.repository import CandidateRepository
from candidate_dedup.models.candidate import CandidateRecord
from candidate_dedup.models.enums import MatchReason, ReviewStatus
from candidate_dedup.models.review import (
    DuplicateGroup,
    DuplicateGroupsResponse,
    GroupMember,
    GroupsMeta,
)
from candidate_dedup.services.phone import normalize_phone, phones_match

logger = logging.getLogger(__name__)


def match_reason(primary: CandidateRecord, duplicate: CandidateRecord) -> MatchReason:
    """Why *duplicate* was grouped under *primary*."""
    phone = phones_match(
        primary.phone_normalized or normalize_phone(primary.phone),
        duplicate.phone_normalized or normalize_phone(duplicate.phone),
    )
    dni = bool(primary.dni) and primary.dni == duplicate.dni
    if phone and dni:
        return MatchReason.compound
    if dni:
        return MatchReason.dni
    if phone:
        return MatchReason.phone
    return MatchReason.name


def _member(record: CandidateRecord) -> GroupMember:
    return GroupMember(
        id=record.id,
        full_name=record.full_name,
        dni=record.dni,
        phone=record.phone,
        last_contacted_at=record.last_contacted_at,
        status=record.status,
        dedup_reviewed=record.dedup_reviewed,
    )


def list_duplicate_groups(
    status: str | ReviewStatus = ReviewStatus.pending,
    repo: CandidateRepository | None = None,
) -> DuplicateGroupsResponse:
    """Return flagged records grouped by primary, newest flags first.

    ``status`` filters the flagged records on ``dedup_reviewed`` (``all``
    disables the filter).  A flagged record whose primary is missing or
    soft-deleted forms a group of its own.
    """
    review_status = ReviewStatus(status)
    reviewed = {
        ReviewStatus.pending: False,
        ReviewStatus.resolved: True,
        ReviewStatus.all: None,
    }[review_status]

    repository = repo or CandidateRepository()
    flagged = repository.list_flagged(reviewed)
    if not flagged:
        return DuplicateGroupsResponse()

    primary_ids = list(dict.fromkeys(r.duplicate_of for r in flagged if r.duplicate_of))
    primaries = {p.id: p for p in repository.get_many(primary_ids)}

    # primary id -> (primary, duplicates); dicts keep first-seen order
    grouped: dict[str, tuple[CandidateRecord, list[CandidateRecord]]] = {}
    for record in flagged:
        primary = primaries.get(record.duplicate_of) if record.duplicate_of else None
        if primary is not None:
            grouped.setdefault(primary.id, (primary, []))[1].append(record)
        else:
            grouped.setdefault(record.id, (record, []))

    groups: list[DuplicateGroup] = []
    for number, (primary, duplicates) in enumerate(grouped.values(), start=1):
        if duplicates:
            reason = match_reason(primary, duplicates[0])
            resolved = all(d.dedup_reviewed for d in duplicates)
            detected_at = duplicates[0].created_at
        else:
            reason = MatchReason.name
            resolved = primary.dedup_reviewed
            detected_at = primary.created_at
        groups.append(
            DuplicateGroup(
                id=f"group-{number}",
                primary_candidate=_member(primary),
                duplicate_candidates=[_member(d) for d in duplicates],
                confidence=MATCH_REASON_CONFIDENCE[reason.value],
                match_reason=reason,
                detected_at=detected_at,
                resolution_status=(
                    ReviewStatus.resolved.value if resolved else ReviewStatus.pending.value
                ),
            )
        )

    pending = sum(1 for g in groups if g.resolution_status == ReviewStatus.pending.value)
    logger.info(
        "duplicate_groups_listed",
        extra={"status": review_status.value, "groups": len(groups), "flagged": len(flagged)},
    )
    return DuplicateGroupsResponse(
        data=groups,
        meta=GroupsMeta(total=len(groups), pending=pending, resolved=len(groups) - pending),
    )

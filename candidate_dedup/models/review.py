"""Response models for the duplicates review queue."""

from datetime import datetime

from pydantic import BaseModel

from candidate_dedup.models.enums import MatchReason


class GroupMember(BaseModel):
    """A candidate shown inside a duplicate group."""
    id: str
    full_name: str
    dni: str | None = None
    phone: str
    last_contacted_at: datetime | None = None
    status: str
    dedup_reviewed: bool = False


class DuplicateGroup(BaseModel):
    """A primary with the records flagged as its duplicates."""
    id: str
    primary_candidate: GroupMember
    duplicate_candidates: list[GroupMember] = []
    confidence: float
    match_reason: MatchReason
    detected_at: datetime | None = None
    resolution_status: str


class GroupsMeta(BaseModel):
    """Counts over the returned groups."""
    total: int = 0
    pending: int = 0
    resolved: int = 0


class DuplicateGroupsResponse(BaseModel):
    """Full response for ``GET /duplicates``."""
    success: bool = True
    data: list[DuplicateGroup] = []
    meta: GroupsMeta = GroupsMeta()

"""Models for duplicate resolution requests, results and audit entries."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from candidate_dedup.models.enums import ActorType


class ResolveRequest(BaseModel):
    """Body of ``POST /candidates/{primary_id}/resolve-duplicate``.

    ``action`` stays a plain string so an unknown token reaches the service
    and is rejected there as a bad request.
    """
    duplicate_candidate_id: UUID
    action: str
    notes: str | None = Field(default=None, max_length=1000)
    reviewer_id: UUID | None = None


class CandidateSummary(BaseModel):
    """Identity summary of one side of a resolution."""
    id: str
    full_name: str
    phone: str


class ResolutionResult(BaseModel):
    """Outcome of a merge / link / dismiss."""
    success: bool = True
    action: str
    message: str
    primary: CandidateSummary
    secondary: CandidateSummary
    merged_fields: dict[str, Any] | None = None


class AuditLogCreate(BaseModel):
    """Payload for inserting an ``audit_log`` row."""
    actor_type: ActorType = ActorType.system
    actor_id: str | None = None
    action: str
    action_category: str
    entity_type: str
    entity_id: str
    details: dict[str, Any] | None = None
    previous_values: dict[str, Any] | None = None
    new_values: dict[str, Any] | None = None

"""Models for duplicate detection: thresholds, matches and check responses.

``DuplicateMatch`` is the engine's internal result (confidences in 0..1);
``DuplicateMatchView`` is what collaborators see (integer percentages plus a
summary of the matched record).
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from candidate_dedup.models.enums import MatchType, Recommendation


class DedupThresholds(BaseModel):
    """Confidence constants and bands used by matching and recommendations."""
    model_config = ConfigDict(frozen=True)

    phone_and_name: float = Field(default=0.99, ge=0.0, le=1.0)
    phone_only: float = Field(default=0.90, ge=0.0, le=1.0)
    name_high: float = Field(default=0.90, ge=0.0, le=1.0)
    name_medium: float = Field(default=0.80, ge=0.0, le=1.0)
    phonetic_floor: float = Field(default=0.80, ge=0.0, le=1.0)
    review_threshold: float = Field(default=0.80, ge=0.0, le=1.0)
    needs_review: float = Field(default=0.85, ge=0.0, le=1.0)
    auto_merge: float = Field(default=0.95, ge=0.0, le=1.0)


# --- Engine results ---

class MatchDetails(BaseModel):
    """Per-signal breakdown of a match."""
    phone_match: bool
    name_similarity: float = Field(ge=0.0, le=1.0)
    phonetic_match: bool


class DuplicateMatch(BaseModel):
    """One scored pair: ``candidate_id`` (probe) against ``match_candidate_id``."""
    candidate_id: str
    match_candidate_id: str
    confidence: float = Field(ge=0.0, le=1.0)
    match_type: MatchType
    details: MatchDetails
    low_confidence: bool = False


class SelfScanFinding(BaseModel):
    """A later record flagged as subordinate to an earlier one."""
    primary_id: str
    secondary_id: str
    match: DuplicateMatch


# --- Collaborator views ---

class MatchDetailsView(BaseModel):
    """Match details with the similarity as a 0-100 percentage."""
    phone_match: bool
    name_similarity: int = Field(ge=0, le=100)
    phonetic_match: bool


class DuplicateMatchView(BaseModel):
    """A match as returned by the check endpoints."""
    candidate_id: str
    full_name: str
    phone: str | None = None
    dni: str | None = None
    zone: str | None = None
    status: str | None = None
    last_contacted_at: datetime | None = None
    times_hired: int = 0
    confidence: int = Field(ge=0, le=100)
    match_type: MatchType
    low_confidence: bool = False
    details: MatchDetailsView


class VerifiedData(BaseModel):
    """Derived identity values computed for the probe."""
    phone_normalized: str
    name_phonetic: str


class DuplicateCheckResult(BaseModel):
    """Response for a single-probe check."""
    has_duplicates: bool
    matches: list[DuplicateMatchView] = []
    total_matches: int = 0
    recommendation: Recommendation
    verified: VerifiedData


class BatchCheckItem(DuplicateCheckResult):
    """One probe's result inside a batch; ``index`` is its input position."""
    index: int


class BatchCheckResult(BaseModel):
    """Response for a batch check."""
    total_checked: int = 0
    with_duplicates: int = 0
    without_duplicates: int = 0
    dropped: int = 0
    results: list[BatchCheckItem] = []

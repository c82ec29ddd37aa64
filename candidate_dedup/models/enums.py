"""Enum types mirroring the candidate and dedup columns."""

from enum import Enum


class CandidateStatus(str, Enum):
    """Lifecycle status of a candidate (``candidates.status`` CHECK)."""
    available = "available"
    contacted = "contacted"
    interviewing = "interviewing"
    hired = "hired"
    rejected = "rejected"
    blacklisted = "blacklisted"
    inactive = "inactive"


class MatchType(str, Enum):
    """Which identity signals produced a duplicate match."""
    phone = "phone"
    name = "name"
    phone_and_name = "phone_and_name"


class ResolutionAction(str, Enum):
    """Terminal actions for a (primary, secondary) pair."""
    merge = "merge"
    link = "link"
    dismiss = "dismiss"


class Recommendation(str, Enum):
    """Recommendation tier derived from the best match confidence."""
    auto_merge_candidate = "auto_merge_candidate"
    needs_review = "needs_review"
    verify_manually = "verify_manually"
    proceed = "proceed"


class ReviewStatus(str, Enum):
    """Filter for the duplicates review queue."""
    pending = "pending"
    resolved = "resolved"
    all = "all"


class MatchReason(str, Enum):
    """Why a flagged record sits in the review queue."""
    phone = "phone"
    name = "name"
    dni = "dni"
    compound = "compound"


class ActorType(str, Enum):
    """Who performed an audited action (``audit_log.actor_type``)."""
    user = "user"
    system = "system"
    cron = "cron"

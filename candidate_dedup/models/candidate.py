"""Pydantic models for the ``candidates`` table.

Only the identity / dedup relevant columns are modelled; any other column
returned by ``select("*")`` is ignored.  ``phone_normalized`` and
``name_phonetic`` are derived columns and are only ever produced by
``CandidateRecord.derive_identity``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from candidate_dedup.models.enums import CandidateStatus
from candidate_dedup.services.phone import normalize_phone
from candidate_dedup.services.phonetics import encode


def compose_full_name(
    first_name: str | None,
    last_name: str | None,
    maternal_last_name: str | None = None,
) -> str:
    """Space-join the non-empty name components."""
    parts = [first_name, last_name, maternal_last_name]
    return " ".join(p.strip() for p in parts if p and p.strip())


class CandidateRecord(BaseModel):
    """A candidate row, persisted or ephemeral (probe)."""
    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: str
    dni: str | None = None
    first_name: str = ""
    last_name: str = ""
    maternal_last_name: str | None = None
    full_name: str = ""
    phone: str = ""
    phone_normalized: str = ""
    email: str | None = None
    name_phonetic: str | None = None
    zone: str | None = None
    address: str | None = None
    status: str = CandidateStatus.available.value
    times_hired: int = 0
    last_hired_at: datetime | None = None
    last_contacted_at: datetime | None = None
    notes: str | None = None
    tags: list[str] = Field(default_factory=list)
    source: str | None = None
    is_duplicate: bool = False
    duplicate_of: str | None = None
    dedup_reviewed: bool = False
    dedup_reviewed_at: datetime | None = None
    dedup_reviewed_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None

    @field_validator(
        "first_name", "last_name", "full_name", "phone", "phone_normalized",
        mode="before",
    )
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("id", "duplicate_of", "dedup_reviewed_by", mode="before")
    @classmethod
    def _ids_as_str(cls, value: Any) -> Any:
        return str(value) if value is not None else None

    @field_validator("tags", mode="before")
    @classmethod
    def _none_to_no_tags(cls, value: Any) -> Any:
        return value or []

    @field_validator("times_hired", "is_duplicate", "dedup_reviewed", mode="before")
    @classmethod
    def _none_to_zero(cls, value: Any) -> Any:
        return value or 0

    @model_validator(mode="after")
    def _fill_full_name(self) -> CandidateRecord:
        if not self.full_name:
            self.full_name = compose_full_name(
                self.first_name, self.last_name, self.maternal_last_name
            )
        return self

    @property
    def in_population(self) -> bool:
        """Eligible as a match target: live and not subordinate."""
        return self.deleted_at is None and not self.is_duplicate

    @property
    def settled(self) -> bool:
        """A reviewer already decided on this record, or it is linked."""
        return self.dedup_reviewed or self.duplicate_of is not None

    @property
    def recency(self) -> float:
        """POSIX timestamp of the last update (or creation), 0 when unknown."""
        moment = self.updated_at or self.created_at
        return moment.timestamp() if moment else 0.0

    def derive_identity(self) -> CandidateRecord:
        """Return a copy with ``phone_normalized`` and ``name_phonetic`` recomputed."""
        full_name = compose_full_name(
            self.first_name, self.last_name, self.maternal_last_name
        ) or self.full_name
        return self.model_copy(
            update={
                "full_name": full_name,
                "phone_normalized": normalize_phone(self.phone),
                "name_phonetic": encode(full_name),
            }
        )


class CandidateProbe(BaseModel):
    """Validated identity data of a candidate being checked for duplicates."""
    model_config = ConfigDict(str_strip_whitespace=True)

    phone: str = Field(min_length=9, max_length=20)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=150)
    maternal_last_name: str | None = Field(default=None, max_length=100)
    dni: str | None = Field(default=None, pattern=r"^\d{8}$")

    def to_record(self, index: int = 0) -> CandidateRecord:
        """Build the ephemeral record scored against the population.

        The synthetic ``temp-`` id never collides with a persisted UUID, and
        the record is never written anywhere.
        """
        return CandidateRecord(
            id=f"temp-{uuid4().hex}-{index}",
            dni=self.dni,
            first_name=self.first_name,
            last_name=self.last_name,
            maternal_last_name=self.maternal_last_name or None,
            phone=self.phone,
            status=CandidateStatus.available.value,
            source="api",
        ).derive_identity()

"""Duplicate match engine.

Pure, synchronous scoring of one candidate against a population, plus the
self-scan used by the background job.  Nothing here touches the database
or raises on odd data: empty names or phones simply fail to match.

Classification (thresholds come from ``DedupThresholds``):

==========================================  ===============  ==================================
condition                                   match_type       confidence
==========================================  ===============  ==================================
phone match and (phonetic or sim >= high)   phone_and_name   ``phone_and_name`` (0.99)
phone match                                 phone            ``phone_only`` (0.90)
phonetic or sim >= high                     name             max(sim, ``phonetic_floor``
                                                             when phonetic)
sim >= medium                               name             sim
otherwise                                   (dropped)
==========================================  ===============  ==================================
"""

from __future__ import annotations

from typing import Iterable

from candidate_dedup.models.candidate import CandidateRecord
from candidate_dedup.models.dedup import (
    DedupThresholds,
    DuplicateMatch,
    MatchDetails,
    SelfScanFinding,
)
from candidate_dedup.models.enums import MatchType
from candidate_dedup.services.phone import phones_match
from candidate_dedup.services.phonetics import encode, phonetic_codes_match
from candidate_dedup.services.similarity import SimilarityStrategy, name_similarity

_DEFAULT_THRESHOLDS = DedupThresholds()


def _phone_of(record: CandidateRecord) -> str:
    return record.phone_normalized or record.phone


def _phonetic_of(record: CandidateRecord) -> str:
    return record.name_phonetic or encode(record.full_name)


def compare_candidates(
    candidate: CandidateRecord,
    other: CandidateRecord,
    thresholds: DedupThresholds | None = None,
    similarity: SimilarityStrategy = name_similarity,
) -> DuplicateMatch | None:
    """Score *candidate* against *other*; ``None`` when they do not match."""
    if candidate.id == other.id:
        return None
    t = thresholds or _DEFAULT_THRESHOLDS

    phone_match = phones_match(_phone_of(candidate), _phone_of(other))
    phonetic_match = phonetic_codes_match(_phonetic_of(candidate), _phonetic_of(other))
    if phone_match or phonetic_match or similarity is not name_similarity:
        raw = similarity(candidate.full_name, other.full_name)
    else:
        # Anything below name_medium is dropped, so the distance can stop early
        raw = name_similarity(candidate.full_name, other.full_name, floor=t.name_medium)
    sim = min(max(raw, 0.0), 1.0)
    strong_name = phonetic_match or sim >= t.name_high

    if phone_match and strong_name:
        match_type, confidence = MatchType.phone_and_name, t.phone_and_name
    elif phone_match:
        match_type, confidence = MatchType.phone, t.phone_only
    elif strong_name:
        match_type = MatchType.name
        confidence = max(sim, t.phonetic_floor if phonetic_match else sim)
    elif sim >= t.name_medium:
        match_type, confidence = MatchType.name, sim
    else:
        return None

    return DuplicateMatch(
        candidate_id=candidate.id,
        match_candidate_id=other.id,
        confidence=confidence,
        match_type=match_type,
        details=MatchDetails(
            phone_match=phone_match,
            name_similarity=sim,
            phonetic_match=phonetic_match,
        ),
        low_confidence=confidence < t.review_threshold,
    )


def find_duplicates(
    candidate: CandidateRecord,
    population: Iterable[CandidateRecord],
    thresholds: DedupThresholds | None = None,
    similarity: SimilarityStrategy = name_similarity,
) -> list[DuplicateMatch]:
    """Return the matches of *candidate* in *population*, best first.

    Soft-deleted and ``is_duplicate`` members are skipped even if the caller
    passed them in.  Equal confidences are ordered by the matched record's
    most recent ``updated_at`` / ``created_at``, then by population order.
    """
    scored: list[tuple[DuplicateMatch, float, int]] = []
    for position, other in enumerate(population):
        if other.id == candidate.id or not other.in_population:
            continue
        match = compare_candidates(candidate, other, thresholds, similarity)
        if match is not None:
            scored.append((match, other.recency, position))

    scored.sort(key=lambda item: (-item[0].confidence, -item[1], item[2]))
    return [match for match, _, _ in scored]


def self_scan(
    population: Iterable[CandidateRecord],
    thresholds: DedupThresholds | None = None,
    similarity: SimilarityStrategy = name_similarity,
) -> list[SelfScanFinding]:
    """Flag cross-duplicates inside *population*.

    Records are visited in the given (canonical) order and each one is only
    compared with earlier records that are still primaries.  A record whose
    best match reaches ``review_threshold`` becomes subordinate to that
    earlier record and is never offered as a primary afterwards, so the
    findings form a forest of depth one.

    Settled records (already reviewed, or linked to another record) keep
    serving as primaries but are never flagged again.
    """
    t = thresholds or _DEFAULT_THRESHOLDS
    primaries: list[CandidateRecord] = []
    findings: list[SelfScanFinding] = []

    for record in population:
        if not record.in_population:
            continue
        if record.settled:
            primaries.append(record)
            continue
        matches = find_duplicates(record, primaries, t, similarity)
        if matches and matches[0].confidence >= t.review_threshold:
            best = matches[0]
            findings.append(
                SelfScanFinding(
                    primary_id=best.match_candidate_id,
                    secondary_id=record.id,
                    match=best,
                )
            )
        else:
            primaries.append(record)

    return findings

"""Single and batch duplicate checks against the live population.

The population is fetched once per call (or supplied by the caller as a
``PopulationSnapshot``) and every probe of a batch is scored against that
same snapshot.  Probes are ephemeral records; nothing is persisted here.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Sequence

from pydantic import ValidationError

from candidate_dedup.core.config import settings
from candidate_dedup.core.exceptions import ValidationFailure
from candidate_dedup.db.repository import CandidateRepository
from candidate_dedup.models.candidate import CandidateProbe, CandidateRecord
from candidate_dedup.models.dedup import (
    BatchCheckItem,
    BatchCheckResult,
    DedupThresholds,
    DuplicateCheckResult,
    DuplicateMatch,
    DuplicateMatchView,
    MatchDetailsView,
    VerifiedData,
)
from candidate_dedup.models.enums import Recommendation
from candidate_dedup.services.matching import find_duplicates
from candidate_dedup.services.population import PopulationSnapshot, fetch_population
from candidate_dedup.services.similarity import SimilarityStrategy, name_similarity

logger = logging.getLogger(__name__)

ProbeInput = CandidateProbe | Mapping[str, Any]
ProbeKey = Callable[[CandidateProbe], str | None]


def _dni_key(probe: CandidateProbe) -> str | None:
    return probe.dni


def to_percent(value: float) -> int:
    """0..1 value as a rounded (half-up) 0..100 integer."""
    return min(max(int(value * 100 + 0.5), 0), 100)


def recommend(confidence: float, thresholds: DedupThresholds) -> Recommendation:
    """Map the best match confidence to a recommendation tier.

    Bands are compared on whole percentages so a confidence that displays
    as 95 lands in the 95 band.
    """
    percent = to_percent(confidence)
    if percent >= to_percent(thresholds.auto_merge):
        return Recommendation.auto_merge_candidate
    if percent >= to_percent(thresholds.needs_review):
        return Recommendation.needs_review
    if percent >= to_percent(thresholds.review_threshold):
        return Recommendation.verify_manually
    return Recommendation.proceed


def format_match(match: DuplicateMatch, snapshot: PopulationSnapshot) -> DuplicateMatchView:
    """Render a match for collaborators, enriched with the matched record."""
    matched = snapshot.get(match.match_candidate_id)
    return DuplicateMatchView(
        candidate_id=match.match_candidate_id,
        full_name=matched.full_name if matched else "Unknown",
        phone=matched.phone if matched else None,
        dni=matched.dni if matched else None,
        zone=matched.zone if matched else None,
        status=matched.status if matched else None,
        last_contacted_at=matched.last_contacted_at if matched else None,
        times_hired=matched.times_hired if matched else 0,
        confidence=to_percent(match.confidence),
        match_type=match.match_type,
        low_confidence=match.low_confidence,
        details=MatchDetailsView(
            phone_match=match.details.phone_match,
            name_similarity=to_percent(match.details.name_similarity),
            phonetic_match=match.details.phonetic_match,
        ),
    )


def _coerce_probe(raw: ProbeInput) -> CandidateProbe:
    if isinstance(raw, CandidateProbe):
        return raw
    return CandidateProbe.model_validate(raw)


def _evaluate(
    record: CandidateRecord,
    snapshot: PopulationSnapshot,
    thresholds: DedupThresholds,
    similarity: SimilarityStrategy,
) -> DuplicateCheckResult:
    matches = find_duplicates(record, snapshot, thresholds, similarity)
    best = matches[0].confidence if matches else 0.0
    recommendation = recommend(best, thresholds)
    return DuplicateCheckResult(
        has_duplicates=recommendation != Recommendation.proceed,
        matches=[format_match(m, snapshot) for m in matches],
        total_matches=len(matches),
        recommendation=recommendation,
        verified=VerifiedData(
            phone_normalized=record.phone_normalized,
            name_phonetic=record.name_phonetic or "",
        ),
    )


def check_candidate(
    probe: ProbeInput,
    snapshot: PopulationSnapshot | None = None,
    thresholds: DedupThresholds | None = None,
    repo: CandidateRepository | None = None,
    similarity: SimilarityStrategy = name_similarity,
) -> DuplicateCheckResult:
    """Check one probe against the live population.

    Raises ``ValidationFailure`` for malformed probe data before any fetch.
    """
    try:
        validated = _coerce_probe(probe)
    except ValidationError as exc:
        raise ValidationFailure(
            "Invalid candidate data",
            {"errors": exc.errors(include_url=False, include_input=False, include_context=False)},
        ) from exc

    t = thresholds or settings.dedup_thresholds()
    population = snapshot if snapshot is not None else fetch_population(repo)
    result = _evaluate(validated.to_record(), population, t, similarity)

    logger.info(
        "check_candidate_completed",
        extra={
            "population_size": len(population),
            "total_matches": result.total_matches,
            "has_duplicates": result.has_duplicates,
        },
    )
    return result


def check_batch(
    probes: Sequence[ProbeInput],
    key: ProbeKey = _dni_key,
    snapshot: PopulationSnapshot | None = None,
    thresholds: DedupThresholds | None = None,
    repo: CandidateRepository | None = None,
    similarity: SimilarityStrategy = name_similarity,
    max_probes: int | None = None,
) -> BatchCheckResult:
    """Check many probes against one population snapshot.

    Probes that fail validation or have no natural *key* are dropped
    silently, as are repeats of a key already seen in this batch (the first
    occurrence wins).  The population is fetched at most once.
    """
    limit = max_probes or settings.DEDUP_BATCH_MAX_PROBES
    if not probes:
        raise ValidationFailure("At least one candidate is required")
    if len(probes) > limit:
        raise ValidationFailure(
            f"Batch too large: {len(probes)} candidates (max {limit})",
            {"max_probes": limit},
        )

    accepted: list[tuple[int, CandidateProbe]] = []
    seen_keys: set[str] = set()
    for index, raw in enumerate(probes):
        try:
            probe = _coerce_probe(raw)
        except ValidationError:
            continue
        natural_key = key(probe)
        if not natural_key or natural_key in seen_keys:
            continue
        seen_keys.add(natural_key)
        accepted.append((index, probe))

    dropped = len(probes) - len(accepted)
    if not accepted:
        logger.info("check_batch_nothing_to_check", extra={"dropped": dropped})
        return BatchCheckResult(dropped=dropped)

    t = thresholds or settings.dedup_thresholds()
    population = snapshot if snapshot is not None else fetch_population(repo)

    results: list[BatchCheckItem] = []
    for index, probe in accepted:
        result = _evaluate(probe.to_record(index), population, t, similarity)
        results.append(BatchCheckItem(index=index, **result.model_dump()))

    with_duplicates = sum(1 for r in results if r.has_duplicates)

    logger.info(
        "check_batch_completed",
        extra={
            "probes_received": len(probes),
            "probes_checked": len(results),
            "dropped": dropped,
            "with_duplicates": with_duplicates,
            "population_size": len(population),
        },
    )

    return BatchCheckResult(
        total_checked=len(results),
        with_duplicates=with_duplicates,
        without_duplicates=len(results) - with_duplicates,
        dropped=dropped,
        results=results,
    )

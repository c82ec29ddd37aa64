"""Unit tests for the match engine and the population snapshot."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from candidate_dedup.core.exceptions import DuplicateChainError
from candidate_dedup.models.candidate import CandidateRecord
from candidate_dedup.models.dedup import DedupThresholds
from candidate_dedup.models.enums import MatchType
from candidate_dedup.services.matching import (
    compare_candidates,
    find_duplicates,
    self_scan,
)
from candidate_dedup.services.population import PopulationSnapshot

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

BASE = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _rec(
    candidate_id: str,
    first_name: str,
    last_name: str,
    phone: str = "",
    minutes: int = 0,
    **extra: Any,
) -> CandidateRecord:
    moment = BASE + timedelta(minutes=minutes)
    return CandidateRecord(
        id=candidate_id,
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        created_at=moment,
        updated_at=moment,
        **extra,
    ).derive_identity()


# ---------------------------------------------------------------------------
# compare_candidates
# ---------------------------------------------------------------------------


class TestCompareCandidates:
    """Classification of a single pair."""

    def test_same_phone_and_name(self) -> None:
        """Given the same person typed twice, match is phone_and_name at 0.99."""
        a = _rec("a", "Maria", "Lopez", "987654321")
        b = _rec("b", "María", "López", "+51 987 654 321")

        match = compare_candidates(a, b)

        assert match is not None
        assert match.match_type == MatchType.phone_and_name
        assert match.confidence == pytest.approx(0.99)
        assert match.details.phone_match is True
        assert match.details.name_similarity == 1.0
        assert match.low_confidence is False

    def test_phone_only(self) -> None:
        a = _rec("a", "Carlos", "Rojas", "987654321")
        b = _rec("b", "Maria", "Lopez", "987654321")

        match = compare_candidates(a, b)

        assert match is not None
        assert match.match_type == MatchType.phone
        assert match.confidence == pytest.approx(0.90)
        assert match.details.phonetic_match is False

    def test_phonetic_match_lifts_confidence_to_floor(self) -> None:
        """Given sound-alike spellings, confidence is at least the phonetic floor."""
        a = _rec("a", "Vicente", "Huamán", "987654321")
        b = _rec("b", "Bisente", "Uaman", "912345678")

        match = compare_candidates(a, b)

        assert match is not None
        assert match.match_type == MatchType.name
        assert match.details.phonetic_match is True
        assert match.details.name_similarity < 0.80
        assert match.confidence == pytest.approx(0.80)
        assert match.low_confidence is False

    def test_quechua_double_consonant(self) -> None:
        a = _rec("a", "Rosa", "Ccoyllur", "987654321")
        b = _rec("b", "Rosa", "Coyllur", "912345678")

        match = compare_candidates(a, b)

        assert match is not None
        assert match.match_type == MatchType.name
        assert match.details.phonetic_match is True
        assert match.confidence == pytest.approx(12 / 13)

    def test_medium_name_similarity(self) -> None:
        a = _rec("a", "Pedro", "Salas", "987654321")
        b = _rec("b", "Pedro", "Salinas", "912345678")

        match = compare_candidates(a, b)

        assert match is not None
        assert match.match_type == MatchType.name
        assert match.details.phonetic_match is False
        assert match.confidence == pytest.approx(1 - 2 / 13)

    def test_unrelated_records_do_not_match(self) -> None:
        a = _rec("a", "Ana", "Diaz", "987654321")
        b = _rec("b", "Luis", "Rojas", "912345678")

        assert compare_candidates(a, b) is None

    def test_same_id_never_matches(self) -> None:
        a = _rec("a", "Ana", "Diaz", "987654321")
        assert compare_candidates(a, a) is None

    def test_blank_records_do_not_match(self) -> None:
        """Given no name and no phone on either side, nothing matches or raises."""
        assert compare_candidates(CandidateRecord(id="x"), CandidateRecord(id="y")) is None

    def test_underived_records_are_still_compared(self) -> None:
        """Given records without derived columns, phone and phonetic are computed."""
        a = CandidateRecord(id="a", first_name="Maria", last_name="Lopez", phone="+51987654321")
        b = CandidateRecord(id="b", first_name="Maria", last_name="Lopez", phone="987654321")

        match = compare_candidates(a, b)

        assert match is not None
        assert match.match_type == MatchType.phone_and_name

    def test_custom_review_threshold_marks_low_confidence(self) -> None:
        a = _rec("a", "Carlos", "Rojas", "987654321")
        b = _rec("b", "Maria", "Lopez", "987654321")

        match = compare_candidates(a, b, DedupThresholds(review_threshold=0.95))

        assert match is not None
        assert match.low_confidence is True

    def test_pluggable_similarity_strategy(self) -> None:
        """Given a strategy scoring everything 0.85, distinct names match at 0.85."""
        a = _rec("a", "Ana", "Diaz", "987654321")
        b = _rec("b", "Luis", "Rojas", "912345678")

        match = compare_candidates(a, b, similarity=lambda x, y: 0.85)

        assert match is not None
        assert match.match_type == MatchType.name
        assert match.confidence == pytest.approx(0.85)


# ---------------------------------------------------------------------------
# find_duplicates
# ---------------------------------------------------------------------------


class TestFindDuplicates:
    def test_skips_self_deleted_and_flagged_members(self) -> None:
        probe = _rec("p", "Maria", "Lopez", "987654321")
        deleted = _rec("d", "Maria", "Lopez", "987654321", deleted_at=BASE)
        flagged = _rec("f", "Maria", "Lopez", "987654321", is_duplicate=True)
        live = _rec("l", "Maria", "Lopez", "987654321")

        matches = find_duplicates(probe, [probe, deleted, flagged, live])

        assert [m.match_candidate_id for m in matches] == ["l"]

    def test_orders_by_confidence_then_recency_then_position(self) -> None:
        probe = _rec("p", "Maria", "Lopez", "987654321")
        phone_only = _rec("phone", "Carlos", "Rojas", "987654321", minutes=50)
        older = _rec("older", "Maria", "Lopez", "987654321", minutes=1)
        newer = _rec("newer", "Maria", "Lopez", "987654321", minutes=10)
        same_time = _rec("same", "Maria", "Lopez", "987654321", minutes=10)

        matches = find_duplicates(probe, [phone_only, older, newer, same_time])

        assert [m.match_candidate_id for m in matches] == [
            "newer", "same", "older", "phone",
        ]

    def test_no_matches(self) -> None:
        probe = _rec("p", "Ana", "Diaz", "987654321")
        assert find_duplicates(probe, [_rec("x", "Luis", "Rojas", "912345678")]) == []

    def test_accepts_a_snapshot(self) -> None:
        probe = _rec("p", "Maria", "Lopez", "987654321")
        snapshot = PopulationSnapshot([_rec("a", "Maria", "Lopez", "987654321")])

        assert len(find_duplicates(probe, snapshot)) == 1


# ---------------------------------------------------------------------------
# self_scan
# ---------------------------------------------------------------------------


class TestSelfScan:
    def test_later_records_flagged_to_earlier_primary(self) -> None:
        a = _rec("a", "Maria", "Lopez", "987654321", minutes=1)
        b = _rec("b", "Maria", "Lopez", "987654321", minutes=2)
        c = _rec("c", "Carlos", "Rojas", "987654321", minutes=3)
        d = _rec("d", "Luis", "Diaz", "912345678", minutes=4)

        findings = self_scan([a, b, c, d])

        assert [(f.primary_id, f.secondary_id) for f in findings] == [("a", "b"), ("a", "c")]

    def test_findings_form_a_depth_one_forest(self) -> None:
        """Given chained similarities, no secondary is ever used as a primary."""
        records = [
            _rec("a", "Pedro", "Salas", "911111111", minutes=1),
            _rec("b", "Pedro", "Salinas", "922222222", minutes=2),
            _rec("c", "Pedro", "Salinas", "933333333", minutes=3),
            _rec("d", "Pedro", "Salinas", "922222222", minutes=4),
        ]

        findings = self_scan(records)

        secondaries = {f.secondary_id for f in findings}
        primaries = {f.primary_id for f in findings}
        assert secondaries.isdisjoint(primaries)
        assert len(secondaries) == len(findings)
        assert "a" not in secondaries

    def test_ignores_flagged_and_deleted_records(self) -> None:
        a = _rec("a", "Maria", "Lopez", "987654321", minutes=1, is_duplicate=True)
        b = _rec("b", "Maria", "Lopez", "987654321", minutes=2, deleted_at=BASE)
        c = _rec("c", "Maria", "Lopez", "987654321", minutes=3)

        assert self_scan([a, b, c]) == []

    def test_reviewed_and_linked_records_are_not_flagged(self) -> None:
        """Given settled records, they are kept as primaries for later ones."""
        a = _rec("a", "Maria", "Lopez", "987654321", minutes=1)
        b = _rec("b", "Maria", "Lopez", "987654321", minutes=2, dedup_reviewed=True)
        c = _rec("c", "Maria", "Lopez", "912345678", minutes=3, duplicate_of="a")
        d = _rec("d", "Luis", "Diaz", "933333333", minutes=4)
        e = _rec("e", "Luis", "Diaz", "933333333", minutes=5, dedup_reviewed=True)
        f = _rec("f", "Luis", "Diaz", "933333333", minutes=6)

        findings = self_scan([a, b, c, d, e, f])

        assert [(x.primary_id, x.secondary_id) for x in findings] == [("e", "f")]

    def test_below_review_threshold_is_not_flagged(self) -> None:
        a = _rec("a", "Pedro", "Salas", "911111111", minutes=1)
        b = _rec("b", "Pedro", "Salinas", "922222222", minutes=2)

        assert self_scan([a, b], DedupThresholds(review_threshold=0.9)) == []


# ---------------------------------------------------------------------------
# PopulationSnapshot
# ---------------------------------------------------------------------------


class TestPopulationSnapshot:
    def test_lookup_and_iteration_order(self) -> None:
        a = _rec("a", "Ana", "Diaz")
        b = _rec("b", "Luis", "Rojas")
        snapshot = PopulationSnapshot([a, b])

        assert len(snapshot) == 2
        assert [r.id for r in snapshot] == ["a", "b"]
        assert snapshot.get("b") is b
        assert snapshot.get("zzz") is None
        assert "a" in snapshot

    def test_chain_follows_duplicate_of(self) -> None:
        snapshot = PopulationSnapshot([
            _rec("a", "Ana", "Diaz"),
            _rec("b", "Ana", "Diaz", duplicate_of="a"),
            _rec("c", "Ana", "Diaz", duplicate_of="b"),
        ])

        assert snapshot.chain("c") == ["c", "b", "a"]
        assert snapshot.chain_depth("c") == 2
        assert snapshot.root_of("c") == "a"
        assert snapshot.root_of("a") == "a"

    def test_parent_outside_snapshot_ends_chain(self) -> None:
        snapshot = PopulationSnapshot([_rec("b", "Ana", "Diaz", duplicate_of="missing")])
        assert snapshot.root_of("b") == "b"

    def test_cycle_raises(self) -> None:
        snapshot = PopulationSnapshot([
            _rec("a", "Ana", "Diaz", duplicate_of="b"),
            _rec("b", "Ana", "Diaz", duplicate_of="a"),
        ])

        with pytest.raises(DuplicateChainError):
            snapshot.chain("a")

    def test_too_deep_chain_raises(self) -> None:
        ids = [f"r{i}" for i in range(8)]
        records = [
            _rec(cid, "Ana", "Diaz", duplicate_of=ids[i - 1] if i else None)
            for i, cid in enumerate(ids)
        ]
        snapshot = PopulationSnapshot(records)

        assert snapshot.chain_depth("r5") == 5
        with pytest.raises(DuplicateChainError):
            snapshot.chain("r7")


class TestMatchInvariants:
    """Properties that hold for any probe and population."""

    NAMES = [
        ("Maria", "Lopez"), ("María", "López"), ("Mario", "Lopez"), ("Pedro", "Salas"),
        ("Pedro", "Salinas"), ("Rosa", "Ccoyllur"), ("Rosa", "Coyllur"), ("Luis", "Diaz"),
        ("Vicente", "Huamán"), ("Bisente", "Uaman"), ("", ""),
    ]
    PHONES = ["987654321", "+51 987 654 321", "912345678", "", "12345"]

    def _population(self) -> list[CandidateRecord]:
        records = []
        for i, (first, last) in enumerate(self.NAMES):
            for j, phone in enumerate(self.PHONES):
                records.append(_rec(f"r{i}-{j}", first, last, phone, minutes=i * 10 + j))
        return records

    def test_confidence_floor_and_ordering(self) -> None:
        t = DedupThresholds()
        floor = min(t.name_medium, t.phone_only)
        population = self._population()

        for probe in population[::7]:
            matches = find_duplicates(probe, population, t)
            confidences = [m.confidence for m in matches]
            assert all(c >= floor for c in confidences)
            assert confidences == sorted(confidences, reverse=True)
            assert probe.id not in {m.match_candidate_id for m in matches}

    def test_self_scan_over_mixed_population_has_no_chains(self) -> None:
        findings = self_scan(self._population())

        secondaries = {f.secondary_id for f in findings}
        assert findings
        assert all(f.primary_id not in secondaries for f in findings)
        parents = {f.secondary_id: f.primary_id for f in findings}
        snapshot = PopulationSnapshot(
            r.model_copy(update={"duplicate_of": parents.get(r.id)})
            for r in self._population()
        )
        assert all(snapshot.chain_depth(s) == 1 for s in secondaries)

"""Population snapshot shared by every comparison of one check or scan.

A ``PopulationSnapshot`` is fetched once and passed by reference into the
match engine; nothing in the engine reaches back to the database.  It is
also an arena indexed by id, which is how ``duplicate_of`` pointers are
followed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Iterator

from candidate_dedup.core.config import settings
from candidate_dedup.core.constants import MAX_CHAIN_DEPTH
from candidate_dedup.core.exceptions import DuplicateChainError
from candidate_dedup.db.repository import CandidateRepository
from candidate_dedup.models.candidate import CandidateRecord

logger = logging.getLogger(__name__)


class PopulationSnapshot:
    """Immutable, ordered set of candidate records indexed by id."""

    def __init__(
        self,
        records: Iterable[CandidateRecord],
        fetched_at: datetime | None = None,
    ) -> None:
        self._records: tuple[CandidateRecord, ...] = tuple(records)
        self._by_id: dict[str, CandidateRecord] = {r.id: r for r in self._records}
        self.fetched_at = fetched_at or datetime.now(timezone.utc)

    def __iter__(self) -> Iterator[CandidateRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, candidate_id: object) -> bool:
        return candidate_id in self._by_id

    def get(self, candidate_id: str) -> CandidateRecord | None:
        return self._by_id.get(candidate_id)

    def parent_of(self, candidate_id: str) -> str | None:
        record = self._by_id.get(candidate_id)
        return record.duplicate_of if record else None

    def chain(self, candidate_id: str, max_depth: int = MAX_CHAIN_DEPTH) -> list[str]:
        """Ids from *candidate_id* up through its ``duplicate_of`` parents.

        Stops at a record without a parent or whose parent is outside the
        snapshot.  Raises ``DuplicateChainError`` on a cycle or when the
        chain is deeper than *max_depth*.
        """
        path = [candidate_id]
        seen = {candidate_id}
        current = self.parent_of(candidate_id)
        while current is not None and current in self._by_id:
            if current in seen:
                raise DuplicateChainError(
                    f"duplicate_of cycle through candidate {current}",
                    {"path": path + [current]},
                )
            path.append(current)
            seen.add(current)
            if len(path) - 1 > max_depth:
                raise DuplicateChainError(
                    f"duplicate_of chain from {candidate_id} exceeds depth {max_depth}",
                    {"path": path},
                )
            current = self.parent_of(current)
        return path

    def chain_depth(self, candidate_id: str) -> int:
        return len(self.chain(candidate_id)) - 1

    def root_of(self, candidate_id: str) -> str:
        return self.chain(candidate_id)[-1]


def fetch_population(
    repo: CandidateRepository | None = None,
    page_size: int | None = None,
) -> PopulationSnapshot:
    """Fetch the active population once and wrap it in a snapshot."""
    repository = repo or CandidateRepository()
    records = repository.fetch_population(page_size or settings.DEDUP_POPULATION_PAGE_SIZE)
    snapshot = PopulationSnapshot(records)
    logger.info(
        "population_fetched",
        extra={"population_size": len(snapshot)},
    )
    return snapshot
